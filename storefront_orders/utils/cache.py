"""
Short-lived cache for admin listing responses.

Entries are grouped by tag (``orders``, ``invoices``); mutating services
invalidate the whole tag so the next listing reads fresh data.
"""
import logging
import time
from typing import Any, Dict, Hashable, Optional, Tuple

from ..config.settings import get_settings

logger = logging.getLogger(__name__)


class ListingCache:
    def __init__(self, ttl_seconds: float = 30.0):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Dict[Hashable, Tuple[float, Any]]] = {}

    def get(self, tag: str, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(tag, {}).get(key)
        if entry is None:
            return None
        expires, value = entry
        if expires < time.monotonic():
            self._entries[tag].pop(key, None)
            return None
        return value

    def set(self, tag: str, key: Hashable, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries.setdefault(tag, {})[key] = (time.monotonic() + self.ttl_seconds, value)

    def invalidate(self, tag: str) -> None:
        dropped = self._entries.pop(tag, None)
        if dropped:
            logger.debug(f"Invalidated {len(dropped)} cached '{tag}' listing(s)")

    def clear(self) -> None:
        self._entries.clear()


ORDERS_TAG = "orders"
INVOICES_TAG = "invoices"

listing_cache = ListingCache(get_settings().listing_cache_ttl_seconds)
