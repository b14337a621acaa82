"""
BudgetPace - Campaign Cache Module.

Caches campaign lists fetched from the ad platforms, keyed by
(account id, resource type). The resource type of a campaign list names
its reporting window, e.g. "campaigns/2025-12-01/2025-12-31".

A failed refresh never discards the last known good data; it only
records the error next to it.
Entries untouched for longer than the retention window are dropped on
the next write, so windows that are no longer queried do not pile up.

Classes:
    CacheEntry: One cached campaign list with freshness metadata.
    CampaignCache: TTL cache of campaign lists.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from budgetpace.schema import Campaign

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]


def campaigns_resource(window_start: date, window_end: date) -> str:
    """Returns the resource type of a campaign list for a window."""
    return f"campaigns/{window_start.isoformat()}/{window_end.isoformat()}"


@dataclass
class CacheEntry:
    """
    A cached campaign list.

    Attributes:
        campaigns: Last known good campaign list.
        fetched_at: Clock reading of the last successful write.
        last_error: Message of the most recent failed refresh, if any.
        touched_at: Clock reading of the last write or failed refresh.
    """

    campaigns: List[Campaign] = field(default_factory=list)
    fetched_at: Optional[float] = None
    last_error: Optional[str] = None
    touched_at: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.fetched_at is not None


class CampaignCache:
    """
    TTL cache of campaign lists.

    Writes refresh the entry's timestamp. Reads through get_fresh only
    return entries younger than the TTL; get returns whatever is cached.
    Each write drops other entries untouched for retention_seconds.

    Example:
        >>> cache = CampaignCache(ttl_seconds=300)
        >>> cache.put("act_1", "campaigns/2025-12-01/2025-12-31", campaigns)
        >>> cache.get_fresh("act_1", "campaigns/2025-12-01/2025-12-31")
        [...]
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Optional[Callable[[], float]] = None,
        retention_seconds: float = 86400.0
    ):
        self._ttl = ttl_seconds
        self._retention = max(retention_seconds, ttl_seconds)
        self._clock = clock or time.monotonic
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def get(self, account_id: str, resource_type: str) -> Optional[CacheEntry]:
        return self._entries.get((account_id, resource_type))

    def get_fresh(self, account_id: str, resource_type: str) -> Optional[List[Campaign]]:
        """Returns the cached campaigns if they are younger than the TTL."""
        entry = self.get(account_id, resource_type)
        if entry is None or not self.is_fresh(entry):
            return None
        return list(entry.campaigns)

    def is_fresh(self, entry: CacheEntry) -> bool:
        if entry.fetched_at is None:
            return False
        return self._clock() - entry.fetched_at < self._ttl

    def put(self, account_id: str, resource_type: str, campaigns: List[Campaign]) -> None:
        now = self._clock()
        self.prune(now)
        self._entries[(account_id, resource_type)] = CacheEntry(
            campaigns=list(campaigns),
            fetched_at=now,
            touched_at=now,
        )
        logger.debug(f"Cached {len(campaigns)} campaign(s) for {account_id} {resource_type}")

    def mark_failed(self, account_id: str, resource_type: str, error: str) -> None:
        """Records a failed refresh, keeping any last known good data."""
        entry = self._entries.setdefault((account_id, resource_type), CacheEntry())
        entry.last_error = error
        entry.touched_at = self._clock()
        logger.warning(
            f"Refresh failed for {account_id} {resource_type}: {error} "
            f"(serving {len(entry.campaigns)} cached campaign(s))"
        )

    def invalidate(self, account_id: str, resource_type: Optional[str] = None) -> int:
        """
        Drops cached entries of an account.

        Args:
            account_id: Account whose entries are dropped.
            resource_type: Only drop this resource. Defaults to all.

        Returns:
            Number of entries dropped.
        """
        keys = [
            key for key in self._entries
            if key[0] == account_id and (resource_type is None or key[1] == resource_type)
        ]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def prune(self, now: Optional[float] = None) -> int:
        """Drops entries untouched for longer than the retention window."""
        now = self._clock() if now is None else now
        expired = [
            key for key, entry in self._entries.items()
            if entry.touched_at is not None and now - entry.touched_at > self._retention
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Pruned {len(expired)} stale cache entries")
        return len(expired)

    def keys(self) -> List[CacheKey]:
        return list(self._entries.keys())
