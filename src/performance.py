"""
Client-side performance helpers: a bounded TTL cache and a request monitor.

``PerformanceCache`` keeps JSON-serialisable values under string keys with
an absolute expiry.  A running byte total tracks the estimated size of all
entries; inserts that would push it past ``max_size`` evict the entries
closest to expiry first.  Every mutation writes the full snapshot to the
key-value store so the next session can pick up where this one stopped.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from config import DEFAULT_CACHE_MAX_BYTES, DEFAULT_CACHE_TTL_MS
from metrics import CACHE_EVICTIONS_TOTAL, CACHE_HITS_TOTAL, CACHE_MISSES_TOTAL, CACHE_SIZE_BYTES
from storage import PERFORMANCE_CACHE_KEY, KeyValueStore

logger = logging.getLogger(__name__)

MsClock = Callable[[], float]

# Size charged to values that cannot be serialised
FALLBACK_ENTRY_SIZE = 1024

_MISSING = object()


def epoch_ms() -> float:
    return time.time() * 1000


def estimate_size(data: Any) -> int:
    """Byte length of the UTF-8 JSON encoding of ``data``."""
    try:
        return len(json.dumps(data, ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError):
        return FALLBACK_ENTRY_SIZE


@dataclass
class CacheEntry:
    key: str
    data: Any
    expires_at: float
    size: int
    tags: List[str] = field(default_factory=list)


class PerformanceCache:
    def __init__(
        self,
        store: KeyValueStore,
        max_size: int = DEFAULT_CACHE_MAX_BYTES,
        default_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Optional[MsClock] = None,
    ) -> None:
        self.store = store
        self.max_size = max_size
        self.default_ttl_ms = default_ttl_ms
        self._clock: MsClock = clock or epoch_ms
        self._entries: Dict[str, CacheEntry] = {}
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._load_from_storage()

    # ---- core operations ----

    def set(self, key: str, data: Any, ttl: Optional[float] = None, tags: Optional[Iterable[str]] = None) -> bool:
        """Store ``data`` under ``key``.

        The new entry competes with the existing ones: while the total is
        over capacity the soonest-expiring entry goes, which may be the one
        just written.  Returns whether ``key`` is still cached afterwards.
        """
        size = estimate_size(data)
        if size > self.max_size:
            logger.warning(
                f"Cache entry {key} ({size} bytes) exceeds capacity {self.max_size}; not stored",
                extra={"extra": {"cache_key": key, "size": size}},
            )
            return False

        existing = self._entries.pop(key, None)
        if existing is not None:
            self._total_size -= existing.size

        expires_at = self._clock() + (self.default_ttl_ms if ttl is None else ttl)
        self._entries[key] = CacheEntry(key=key, data=data, expires_at=expires_at, size=size, tags=list(tags or []))
        self._total_size += size

        while self._entries and self._total_size > self.max_size:
            self._evict_soonest_expiring()

        self._persist()
        return key in self._entries

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._record_miss()
            return default
        if self._clock() > entry.expires_at:
            self.delete(key)
            self._record_miss()
            return default
        self._hits += 1
        try:
            CACHE_HITS_TOTAL.inc()
        except Exception:
            pass
        return entry.data

    def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._total_size -= entry.size
        self._persist()
        return True

    def invalidate_by_tag(self, tag: str) -> int:
        """Remove every entry carrying ``tag``; returns how many went."""
        doomed = [key for key, entry in self._entries.items() if tag in entry.tags]
        for key in doomed:
            self._total_size -= self._entries.pop(key).size
        if doomed:
            self._persist()
            logger.debug(f"Invalidated {len(doomed)} cache entries tagged {tag}")
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._total_size = 0
        self._update_size_gauge()
        try:
            self.store.remove_item(PERFORMANCE_CACHE_KEY)
        except Exception as e:
            logger.error(f"Failed to clear persisted cache: {e}")

    def cached(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl: Optional[float] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Any:
        """Return the cached value for ``key``, loading and storing it on a miss.

        A stored ``None`` counts as a hit.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        self.set(key, value, ttl=ttl, tags=tags)
        return value

    # ---- introspection ----

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def total_size(self) -> int:
        return self._total_size

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        live = [e for e in self._entries.values() if now <= e.expires_at]
        live_size = sum(e.size for e in live)
        lookups = self._hits + self._misses
        return {
            "total_entries": len(live),
            "total_size": live_size,
            "max_size": self.max_size,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "average_entry_size": live_size / len(live) if live else 0.0,
            "evictions": self._evictions,
        }

    # ---- internals ----

    def _record_miss(self) -> None:
        self._misses += 1
        try:
            CACHE_MISSES_TOTAL.inc()
        except Exception:
            pass

    def _evict_soonest_expiring(self) -> None:
        victim = min(self._entries.values(), key=lambda e: e.expires_at)
        del self._entries[victim.key]
        self._total_size -= victim.size
        self._evictions += 1
        try:
            CACHE_EVICTIONS_TOTAL.inc()
        except Exception:
            pass
        logger.debug(f"Evicted cache entry {victim.key} ({victim.size} bytes)")

    def _update_size_gauge(self) -> None:
        try:
            CACHE_SIZE_BYTES.set(self._total_size)
        except Exception:
            pass

    def _persist(self) -> None:
        self._update_size_gauge()
        try:
            snapshot = json.dumps([asdict(e) for e in self._entries.values()])
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to serialise performance cache: {e}")
            return
        if not self.store.set_item(PERFORMANCE_CACHE_KEY, snapshot):
            logger.warning("Failed to persist performance cache")

    def _load_from_storage(self) -> None:
        raw = self.store.get_item(PERFORMANCE_CACHE_KEY)
        if not raw:
            return
        try:
            rows = json.loads(raw)
            now = self._clock()
            for row in rows:
                entry = CacheEntry(
                    key=row["key"],
                    data=row["data"],
                    expires_at=float(row["expires_at"]),
                    size=int(row["size"]),
                    tags=list(row.get("tags") or []),
                )
                if entry.expires_at < now or entry.key in self._entries:
                    continue
                if self._total_size + entry.size > self.max_size:
                    continue
                self._entries[entry.key] = entry
                self._total_size += entry.size
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Failed to load performance cache: {e}")
            self._entries.clear()
            self._total_size = 0
        self._update_size_gauge()


# ------------------------------------------------------------------------------
# Request monitoring
# ------------------------------------------------------------------------------

DEFAULT_BUDGETS = {"javascript": 500, "css": 100, "images": 1000, "total": 2000}  # KB


class PerformanceMonitor:
    """Counts network requests and tracks a running API response time."""

    def __init__(self) -> None:
        self.network_requests = 0
        self.api_response_time_ms = 0.0

    def record_request(self, url: str, duration_ms: float) -> None:
        self.network_requests += 1
        if "/api/" in url:
            # Running average, weighted towards the latest sample
            self.api_response_time_ms = (self.api_response_time_ms + duration_ms) / 2

    def snapshot(self) -> Dict[str, float]:
        return {
            "network_requests": self.network_requests,
            "api_response_time_ms": self.api_response_time_ms,
        }

    @staticmethod
    def check_budget(resources: List[Dict[str, Any]], budgets: Optional[Dict[str, float]] = None) -> List[str]:
        """Compare resource sizes against KB budgets.

        ``resources`` is a list of ``{"name": str, "size": bytes}``; the
        resource type is inferred from the file extension.
        """
        limits = dict(DEFAULT_BUDGETS)
        limits.update(budgets or {})
        totals = {"javascript": 0, "css": 0, "images": 0, "total": 0}
        for res in resources:
            name = str(res.get("name", "")).lower().split("?", 1)[0]
            size = res.get("size") or 0
            totals["total"] += size
            if name.endswith(".js"):
                totals["javascript"] += size
            elif name.endswith(".css"):
                totals["css"] += size
            elif name.endswith((".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")):
                totals["images"] += size

        warnings = []
        for kind in ("javascript", "css", "images", "total"):
            kb = totals[kind] / 1024
            if kb > limits[kind]:
                warnings.append(f"{kind} size {kb:.1f}KB exceeds budget of {limits[kind]}KB")
        return warnings
