"""Tests for the request counter and the address blocklist."""

import asyncio

import pytest

from storefront_orders.errors import IpBlockedError, RateLimitError
from storefront_orders.services.rate_limit import block_ip, require_rate_limit


async def call_times(store, count, **kwargs):
    records = []
    for _ in range(count):
        records.append(await require_rate_limit(store, 60, 10, **kwargs))
    return records


class TestFixedWindow:
    async def test_tenth_call_allowed_eleventh_denied(self, store, clock):
        records = await call_times(store, 10, identifier="admin-1")
        assert [record.count for record in records] == list(range(1, 11))

        with pytest.raises(RateLimitError):
            await require_rate_limit(store, 60, 10, identifier="admin-1")

        stored = await store.get_rate_limit("admin-1")
        assert stored["count"] == 10

    async def test_counter_resets_after_window(self, store, clock):
        await call_times(store, 10, identifier="admin-1")
        with pytest.raises(RateLimitError):
            await require_rate_limit(store, 60, 10, identifier="admin-1")

        clock.advance(seconds=61)
        record = await require_rate_limit(store, 60, 10, identifier="admin-1")
        assert record.count == 1

    async def test_still_denied_inside_window(self, store, clock):
        await call_times(store, 10, identifier="admin-1")
        clock.advance(seconds=30)
        with pytest.raises(RateLimitError):
            await require_rate_limit(store, 60, 10, identifier="admin-1")

    async def test_keys_are_independent(self, store, clock):
        await call_times(store, 10, identifier="admin-1")
        record = await require_rate_limit(store, 60, 10, identifier="admin-2")
        assert record.count == 1

    async def test_client_ip_used_without_identifier(self, store, clock):
        await require_rate_limit(store, 60, 10, client_ip="10.0.0.1")
        stored = await store.get_rate_limit("10.0.0.1")
        assert stored["count"] == 1
        assert stored["last_request"] == int(clock.now.timestamp() * 1000)

    async def test_unknown_caller_shares_one_key(self, store, clock):
        await call_times(store, 2)
        stored = await store.get_rate_limit("unknown-ip")
        assert stored["count"] == 2

    async def test_concurrent_calls_admit_exactly_the_limit(self, store, clock):
        outcomes = await asyncio.gather(
            *(require_rate_limit(store, 60, 10, identifier="admin-1") for _ in range(15)),
            return_exceptions=True,
        )

        admitted = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
        denied = [outcome for outcome in outcomes if isinstance(outcome, RateLimitError)]
        assert len(admitted) == 10
        assert len(denied) == 5
        assert sorted(record.count for record in admitted) == list(range(1, 11))
        assert (await store.get_rate_limit("admin-1"))["count"] == 10


class TestBlocklist:
    async def test_blocked_address_rejected(self, store, clock):
        result = await block_ip(store, "9.9.9.9", "admin-1", "card testing")
        assert result.success
        assert result.status_code == 201
        assert result.data["expires_at"] is None

        with pytest.raises(IpBlockedError):
            await require_rate_limit(store, 60, 10, identifier="admin-1", client_ip="9.9.9.9")

    async def test_block_checked_before_counter(self, store, clock):
        await block_ip(store, "9.9.9.9", "admin-1")
        with pytest.raises(IpBlockedError):
            await require_rate_limit(store, 60, 10, client_ip="9.9.9.9")
        assert await store.get_rate_limit("9.9.9.9") is None

    async def test_expired_block_is_lifted(self, store, clock):
        await block_ip(store, "9.9.9.9", "admin-1", duration_seconds=60)
        clock.advance(seconds=61)

        record = await require_rate_limit(store, 60, 10, client_ip="9.9.9.9")
        assert record.count == 1
        assert await store.get_blocked_ip("9.9.9.9") is None

    async def test_other_addresses_unaffected(self, store, clock):
        await block_ip(store, "9.9.9.9", "admin-1")
        record = await require_rate_limit(store, 60, 10, client_ip="8.8.8.8")
        assert record.count == 1

    async def test_blocking_requires_sign_in(self, store, clock):
        result = await block_ip(store, "9.9.9.9", None, "card testing")

        assert not result.success
        assert result.status_code == 401
        assert await store.get_blocked_ip("9.9.9.9") is None

    async def test_blocking_counts_against_rate_limit(self, store, clock):
        for octet in range(10):
            assert (await block_ip(store, f"9.9.9.{octet}", "admin-1")).success

        result = await block_ip(store, "9.9.9.99", "admin-1")

        assert result.status_code == 429
        assert await store.get_blocked_ip("9.9.9.99") is None
