"""
Fixed-window request counter and network address blocklist.
"""
import logging
from datetime import timedelta
from typing import Optional

from ..config.settings import get_settings
from ..errors import AuthenticationRequired, IpBlockedError, RateLimitError
from ..models.security import BlockedIp, RateLimitRecord
from ..repositories.base import OrderStore
from ..schemas.common import ActionResult
from ..utils import clock
from ..utils.clock import ensure_utc, epoch_millis
from .actions import action

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown-ip"


async def ensure_ip_allowed(store: OrderStore, client_ip: Optional[str]) -> None:
    """Raise ``IpBlockedError`` for a blocked address; expired blocks are removed."""
    if not client_ip:
        return

    entry = await store.get_blocked_ip(client_ip)
    if entry is None:
        return

    blocked = BlockedIp.model_validate(entry)
    if blocked.expires_at is not None and ensure_utc(blocked.expires_at) <= clock.utcnow():
        await store.delete_blocked_ip(client_ip)
        logger.info(f"Block on {client_ip} expired, entry removed")
        return

    logger.warning(f"🚫 Request from blocked address {client_ip}")
    raise IpBlockedError()


async def require_rate_limit(
    store: OrderStore,
    window_sec: Optional[int] = None,
    max_requests: Optional[int] = None,
    identifier: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> RateLimitRecord:
    """
    Count one request for ``identifier`` (or the client address) and raise
    ``RateLimitError`` once ``max_requests`` were seen inside the window.

    The read and the conditional write run in one store transaction.
    """
    settings = get_settings()
    window_sec = window_sec or settings.rate_limit_window_seconds
    max_requests = max_requests or settings.rate_limit_max_requests

    await ensure_ip_allowed(store, client_ip)

    key = identifier or client_ip or UNKNOWN_IP
    now_ms = epoch_millis(clock.utcnow())
    window_start = now_ms - window_sec * 1000

    async with store.transaction() as session:
        stored = await store.get_rate_limit(key, session=session)

        if stored is None or RateLimitRecord.model_validate(stored).last_request < window_start:
            await store.save_rate_limit(key, 1, now_ms, session=session)
            return RateLimitRecord(key=key, count=1, last_request=now_ms)

        record = RateLimitRecord.model_validate(stored)
        if record.count < max_requests:
            await store.increment_rate_limit(key, now_ms, session=session)
            return RateLimitRecord(key=key, count=record.count + 1, last_request=now_ms)

    raise RateLimitError()


async def authorize_action(store: OrderStore, user_id: Optional[str], client_ip: Optional[str] = None) -> None:
    """Gate for admin writes: a signed-in actor within its request budget."""
    if not user_id:
        raise AuthenticationRequired()
    await require_rate_limit(store, identifier=user_id, client_ip=client_ip)


@action("Failed to block IP address")
async def block_ip(
    store: OrderStore,
    ip: str,
    user_id: Optional[str],
    reason: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    client_ip: Optional[str] = None,
) -> ActionResult:
    """Add or refresh a blocklist entry; permanent when no duration is given."""
    await authorize_action(store, user_id, client_ip)

    expires_at = clock.utcnow() + timedelta(seconds=duration_seconds) if duration_seconds else None
    entry = await store.upsert_blocked_ip(ip, reason, expires_at)
    blocked = BlockedIp.model_validate(entry)

    logger.info(f"🚫 Blocked {blocked.ip}" + (f" until {blocked.expires_at.isoformat()}" if blocked.expires_at else ""))
    return ActionResult.ok("IP address blocked", data=blocked.model_dump(), status_code=201)
