"""Process-wide cache of rendered announcements.

Keys are fingerprints: a stable hash of everything that changes what an
announcement sounds like (pipeline version, voice, speech rate, platform,
provider) plus the announcement content normalized so construction order does
not matter.

Features:
- At most one render per fingerprint, even under concurrent callers
- Entries are reused only while their artifact is still valid (e.g. the
  backing file still exists); otherwise the lookup is treated as a miss
- Failed renders are never cached
- Optional LRU size bound and TTL (unbounded by default)
- Hit/miss statistics

Usage:
    cache = AnnouncementCache()
    fingerprint = fingerprint_text("Alice, Bob go!", profile)
    artifact = await cache.get_or_render(
        fingerprint, lambda: renderer.render("Alice, Bob go!", profile)
    )
"""

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..core.models import AnnouncementGroup, ScheduleEntry, SynchronizedSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderProfile:
    """Rendering parameters that affect output audio."""

    pipeline_version: str
    voice: str
    speech_rate: int
    platform: str
    provider: str
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# FINGERPRINTS
# =============================================================================

def build_fingerprint(profile: RenderProfile, payload: Dict[str, Any]) -> str:
    """Hash a render profile together with an already-normalized payload."""
    document = {"profile": profile.to_dict(), "payload": payload}
    encoded = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()[:16]


def _normalized_pairs(
    content: Union[SynchronizedSchedule, Iterable[AnnouncementGroup], Iterable[ScheduleEntry]],
) -> List[Tuple[int, str]]:
    pairs = []
    for item in content:
        if isinstance(item, AnnouncementGroup):
            pairs.extend((item.fire_offset, entry.name) for entry in item.entries)
        else:
            pairs.append((item.fire_offset, item.name))
    return sorted(pairs)


def fingerprint_groups(
    content: Union[SynchronizedSchedule, Iterable[AnnouncementGroup], Iterable[ScheduleEntry]],
    profile: RenderProfile,
    **extra: Any,
) -> str:
    """Fingerprint a grouped schedule, independent of actor input order.

    Args:
        content: A schedule, its groups, or its entries
        profile: Rendering parameters
        **extra: Further output-affecting values (JSON-serializable),
            e.g. total_duration or narration settings

    Returns:
        16-character hex fingerprint
    """
    payload = {
        "kind": "groups",
        "content": [[offset, name] for offset, name in _normalized_pairs(content)],
    }
    if extra:
        payload["extra"] = extra
    return build_fingerprint(profile, payload)


def fingerprint_text(text: str, profile: RenderProfile) -> str:
    """Fingerprint a single announcement string."""
    return build_fingerprint(profile, {"kind": "text", "text": text})


# =============================================================================
# CACHE
# =============================================================================

@dataclass
class CacheEntry:
    """A cached artifact."""

    fingerprint: str
    artifact: Any
    created_at: float = field(default_factory=time.time)
    last_accessed: float = field(default_factory=time.time)
    access_count: int = 0

    def touch(self, now: float):
        """Update access time and count."""
        self.last_accessed = now
        self.access_count += 1


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    misses: int = 0
    renders: int = 0
    coalesced: int = 0       # Callers that joined an in-flight render
    failures: int = 0
    evictions: int = 0
    invalidations: int = 0   # Entries dropped because the artifact went missing

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record_hit(self):
        self.hits += 1

    def record_miss(self):
        self.misses += 1

    def to_dict(self) -> Dict[str, Any]:
        """Export as dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate * 100, 2),
            "renders": self.renders,
            "coalesced": self.coalesced,
            "failures": self.failures,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
        }


def _artifact_is_valid(artifact: Any) -> bool:
    check = getattr(artifact, "is_valid", None)
    return check() if callable(check) else True


class AnnouncementCache:
    """Fingerprint-keyed artifact cache with per-fingerprint single-flight.

    Safe for concurrent use from one event loop. Concurrent lookups for
    different fingerprints never wait on each other; concurrent lookups for
    the same fingerprint share a single render.
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            max_entries: LRU bound; None keeps every entry
            ttl_seconds: Entry lifetime; None never expires
            clock: Time source for access bookkeeping and TTL
        """
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive or None")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive or None")

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, asyncio.Future] = {}

        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def _lookup(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return a usable entry, dropping it if expired or invalid."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None

        now = self._clock()
        if self.ttl_seconds is not None and now - entry.created_at >= self.ttl_seconds:
            del self._entries[fingerprint]
            self.stats.evictions += 1
            logger.debug(f"Cache entry expired: {fingerprint}")
            return None

        if not _artifact_is_valid(entry.artifact):
            del self._entries[fingerprint]
            self.stats.invalidations += 1
            logger.debug(f"Cached artifact no longer valid: {fingerprint}")
            return None

        entry.touch(now)
        self._entries.move_to_end(fingerprint)
        return entry

    def _store(self, fingerprint: str, artifact: Any) -> None:
        now = self._clock()
        self._entries[fingerprint] = CacheEntry(
            fingerprint=fingerprint, artifact=artifact, created_at=now, last_accessed=now
        )
        self._entries.move_to_end(fingerprint)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self.stats.evictions += 1
                logger.debug(f"Evicted cache entry: {evicted}")

    def get(self, fingerprint: str) -> Optional[Any]:
        """Get a cached artifact without rendering."""
        entry = self._lookup(fingerprint)
        return entry.artifact if entry else None

    def put(self, fingerprint: str, artifact: Any) -> None:
        """Store an artifact rendered elsewhere."""
        self._store(fingerprint, artifact)

    async def get_or_render(
        self,
        fingerprint: str,
        render_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached artifact, rendering it at most once.

        Args:
            fingerprint: Cache key (see fingerprint_groups / fingerprint_text)
            render_fn: Zero-argument coroutine function producing the artifact

        Returns:
            The artifact

        Raises:
            Whatever render_fn raises. Failures are not cached; the next
            call renders again.
        """
        entry = self._lookup(fingerprint)
        if entry is not None:
            self.stats.record_hit()
            logger.debug(f"Cache HIT: {fingerprint}")
            return entry.artifact

        future = self._in_flight.get(fingerprint)
        if future is None:
            self.stats.record_miss()
            logger.debug(f"Cache MISS: {fingerprint}")
            future = asyncio.ensure_future(self._render(fingerprint, render_fn))
            future.add_done_callback(_retrieve_exception)
            self._in_flight[fingerprint] = future
        else:
            self.stats.coalesced += 1
            logger.debug(f"Joining in-flight render: {fingerprint}")

        # Shielded so one cancelled waiter does not cancel the shared render
        return await asyncio.shield(future)

    async def _render(self, fingerprint: str, render_fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            artifact = await render_fn()
        except Exception:
            self.stats.failures += 1
            raise
        else:
            self.stats.renders += 1
            self._store(fingerprint, artifact)
            return artifact
        finally:
            self._in_flight.pop(fingerprint, None)

    def invalidate(self, fingerprint: str) -> bool:
        """Drop one entry. Returns True if it was cached."""
        return self._entries.pop(fingerprint, None) is not None

    def clear(self) -> int:
        """Drop every entry. In-flight renders are unaffected."""
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Announcement cache cleared ({count} entries)")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        stats = self.stats.to_dict()
        stats["entry_count"] = len(self._entries)
        stats["in_flight"] = len(self._in_flight)
        stats["max_entries"] = self.max_entries
        stats["ttl_seconds"] = self.ttl_seconds
        return stats


def _retrieve_exception(future: asyncio.Future) -> None:
    # Mark the exception retrieved when every waiter was cancelled
    if not future.cancelled():
        future.exception()


__all__ = [
    "AnnouncementCache",
    "CacheEntry",
    "CacheStats",
    "RenderProfile",
    "build_fingerprint",
    "fingerprint_groups",
    "fingerprint_text",
]
