"""
Query cache with explicit invalidation

Read results are cached per scope (one scope per logged-in user plus a
shared ``public`` scope for the catalog). Every mutating operation is listed
in ``INVALIDATIONS`` with the query keys it makes stale, so invalidation is
declared in one place instead of being scattered through handlers.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from storefront.utils.constants import CacheSettings

logger = logging.getLogger(__name__)

# mutation -> query keys it invalidates (a key also covers "key:*")
INVALIDATIONS: Dict[str, Tuple[str, ...]] = {
    "cart.add": ("cart",),
    "cart.update": ("cart",),
    "cart.remove": ("cart",),
    "cart.clear": ("cart",),
    "order.create": ("cart", "orders"),
    "order.cancel": ("orders", "order"),
    "order.update_status": ("orders", "order", "admin.orders"),
    "order.status_changed": ("orders", "order"),
    "product.create": ("products", "product", "admin.products"),
    "product.update": ("products", "product", "admin.products"),
    "product.delete": ("products", "product", "admin.products"),
    "review.create": ("reviews", "product"),
    "review.update": ("reviews", "product"),
    "review.delete": ("reviews", "product"),
    "profile.update": ("profile",),
    "address.create": ("addresses",),
    "address.update": ("addresses",),
    "address.delete": ("addresses",),
}

# keys that are cached in the shared public scope
PUBLIC_KEYS = ("products", "product", "reviews")


def key_matches(key: str, prefix: str) -> bool:
    return key == prefix or key.startswith(prefix + ":")


class QueryCache:
    """In-memory TTL cache of API reads"""

    def __init__(
        self,
        default_ttl: int = CacheSettings.DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = CacheSettings.MAX_ENTRIES,
    ):
        self._cache: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._max_entries = max_entries
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "invalidations": 0,
            "evictions": 0,
        }

    def get(self, scope: str, key: str) -> Optional[Any]:
        entry = self._cache.get((scope, key))
        if entry is not None:
            if entry["expires_at"] > self._clock():
                self._stats["hits"] += 1
                return entry["value"]
            del self._cache[(scope, key)]

        self._stats["misses"] += 1
        return None

    def set(self, scope: str, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl is None:
            ttl = self._default_ttl
        if ttl <= 0:
            return
        if (scope, key) not in self._cache and len(self._cache) >= self._max_entries:
            self._make_room()
        self._cache[(scope, key)] = {"value": value, "expires_at": self._clock() + ttl}
        self._stats["sets"] += 1

    def _make_room(self) -> None:
        """Sweep expired entries; if still full, drop the ones expiring soonest"""
        self.cleanup_expired()
        overflow = len(self._cache) - self._max_entries + 1
        if overflow <= 0:
            return
        soonest = sorted(self._cache, key=lambda cache_key: self._cache[cache_key]["expires_at"])[:overflow]
        for cache_key in soonest:
            del self._cache[cache_key]
        self._stats["evictions"] += len(soonest)
        logger.warning("Query cache full, evicted %s live entries", len(soonest))

    def cleanup_expired(self) -> int:
        """Remove expired entries and return count removed"""
        now = self._clock()
        expired_keys = [cache_key for cache_key, entry in self._cache.items() if entry["expires_at"] <= now]
        for cache_key in expired_keys:
            del self._cache[cache_key]
        return len(expired_keys)

    async def get_or_fetch(
        self,
        scope: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
        refresh: bool = False,
    ) -> Any:
        """Return the cached value or await ``fetch`` and cache its result"""
        if not refresh:
            value = self.get(scope, key)
            if value is not None:
                return value
        value = await fetch()
        self.set(scope, key, value, ttl)
        return value

    def invalidate(self, scope: str, prefix: str) -> int:
        """Drop ``prefix`` and every ``prefix:*`` key in ``scope``"""
        stale = [
            cache_key
            for cache_key in self._cache
            if cache_key[0] == scope and key_matches(cache_key[1], prefix)
        ]
        for cache_key in stale:
            del self._cache[cache_key]
        self._stats["invalidations"] += len(stale)
        return len(stale)

    def invalidate_for(self, mutation: str, scope: str) -> int:
        """Apply the invalidation table entry for ``mutation``"""
        try:
            prefixes = INVALIDATIONS[mutation]
        except KeyError:
            raise ValueError(f"Mutation {mutation!r} has no invalidation entry") from None

        removed = 0
        for prefix in prefixes:
            removed += self.invalidate(scope, prefix)
            if prefix in PUBLIC_KEYS and scope != CacheSettings.PUBLIC_SCOPE:
                removed += self.invalidate(CacheSettings.PUBLIC_SCOPE, prefix)
        logger.debug("Invalidated %s cached queries after %s", removed, mutation)
        return removed

    def clear_scope(self, scope: str) -> None:
        for cache_key in [k for k in self._cache if k[0] == scope]:
            del self._cache[cache_key]

    def clear(self) -> None:
        self._cache.clear()
        self._stats = {k: 0 for k in self._stats}

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0
        return {
            **self._stats,
            "total_requests": total_requests,
            "hit_rate": round(hit_rate, 2),
            "cache_size": len(self._cache),
        }
