"""Real-time service for fetching GTFS-RT and SIRI data with caching.

All upstream access goes through one ResponseCache so concurrent requests for
the same feed or stop share a single upstream call per TTL window. Failed
refreshes fall back to the last cached payload; UpstreamError is raised only
when nothing was ever cached for the key.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from realtimebus.data.cache import CacheResult, ResponseCache
from realtimebus.data.config import TransitConfig, get_transit_config
from realtimebus.data.gtfsrt_client import (
    ALERTS_PATH,
    TRIP_UPDATES_PATH,
    VEHICLE_POSITIONS_PATH,
    GTFSRTClient,
)
from realtimebus.data.siri_client import SiriClient
from realtimebus.errors import UpstreamError
from realtimebus.models.realtime import GTFSRTFeed
from realtimebus.models.siri import SiriResponse

logger = logging.getLogger(__name__)

SIRI_KEY_PREFIX = "siri_"

# Module-level state (lazy-initialized)
_cache: ResponseCache | None = None
_config: TransitConfig | None = None


def _get_config() -> TransitConfig:
    """Get or create the transit config singleton."""
    global _config
    if _config is None:
        _config = get_transit_config()
    return _config


def get_cache() -> ResponseCache:
    """Get or create the shared response cache."""
    global _cache
    if _cache is None:
        _cache = ResponseCache()
    return _cache


def siri_cache_key(stop_id: str) -> str:
    return f"{SIRI_KEY_PREFIX}{stop_id}"


def _gtfsrt_ttl(feed_path: str) -> float:
    config = _get_config()
    if feed_path == ALERTS_PATH:
        return config.alerts_cache_ttl_seconds
    return config.gtfsrt_cache_ttl_seconds


async def get_gtfsrt_feed(feed_path: str) -> CacheResult[GTFSRTFeed]:
    """Fetch a GTFS-RT feed with caching.

    Args:
        feed_path: Feed path, also used as the cache key.

    Returns:
        CacheResult with the decoded feed (stale=True if served after a failed refresh).

    Raises:
        UpstreamError: If the fetch failed and nothing is cached for the feed.
    """
    config = _get_config()

    async def fetch() -> GTFSRTFeed:
        async with GTFSRTClient(config) as client:
            feed = await client.fetch_feed(feed_path)
        logger.debug(
            f"Fetched {feed_path}: {len(feed.trip_updates)} trip updates, "
            f"{len(feed.vehicles)} vehicles, {len(feed.alerts)} alerts"
        )
        return feed

    return await get_cache().get(feed_path, _gtfsrt_ttl(feed_path), fetch)


async def get_trip_updates() -> CacheResult[GTFSRTFeed]:
    """Fetch trip updates with caching (15s TTL by default)."""
    return await get_gtfsrt_feed(TRIP_UPDATES_PATH)


async def get_vehicle_positions() -> CacheResult[GTFSRTFeed]:
    """Fetch vehicle positions with caching (15s TTL by default)."""
    return await get_gtfsrt_feed(VEHICLE_POSITIONS_PATH)


async def get_alerts() -> CacheResult[GTFSRTFeed]:
    """Fetch service alerts with caching (60s TTL by default)."""
    return await get_gtfsrt_feed(ALERTS_PATH)


async def get_siri_stop(stop_id: str) -> CacheResult[SiriResponse]:
    """Fetch SIRI stop-monitoring data for one stop with caching (30s TTL by default).

    Raises:
        UpstreamError: If the fetch failed and nothing is cached for the stop.
    """
    config = _get_config()

    async def fetch() -> SiriResponse:
        async with SiriClient(config) as client:
            response = await client.fetch_stop_monitoring(stop_id)
        logger.debug(f"Fetched {len(response.visits)} SIRI visits for stop {stop_id}")
        return response

    return await get_cache().get(siri_cache_key(stop_id), config.siri_cache_ttl_seconds, fetch)


@dataclass
class SiriBatchResult:
    """Outcome of a multi-stop SIRI fetch.

    Stops in `failed` have no data at all; everything else is in `responses`.
    """

    stop_ids: list[str]
    responses: dict[str, SiriResponse] = field(default_factory=dict)
    failed: dict[str, UpstreamError] = field(default_factory=dict)
    stale_stop_ids: list[str] = field(default_factory=list)
    fetched_at_ms: int | None = None  # oldest fetch time among the responses

    @property
    def stale(self) -> bool:
        return bool(self.stale_stop_ids)


def limit_stop_ids(stop_ids: list[str], limit: int) -> list[str]:
    """Deduplicate stop IDs (keeping first-seen order) and cap the batch size."""
    unique = list(dict.fromkeys(s for s in stop_ids if s))
    if len(unique) > limit:
        logger.debug(f"Batch of {len(unique)} stops truncated to {limit}")
    return unique[:limit]


async def get_siri_batch(stop_ids: list[str]) -> SiriBatchResult:
    """Fetch SIRI data for several stops concurrently.

    At most `siri_batch_limit` stops are fetched. A failing stop does not fail
    the batch; it is reported in `failed`.

    Raises:
        UpstreamError: The first error encountered, when every stop failed.
    """
    ids = limit_stop_ids(stop_ids, _get_config().siri_batch_limit)
    result = SiriBatchResult(stop_ids=ids)
    if not ids:
        return result

    outcomes = await asyncio.gather(*(get_siri_stop(s) for s in ids), return_exceptions=True)

    for stop_id, outcome in zip(ids, outcomes):
        if isinstance(outcome, UpstreamError):
            logger.warning(f"SIRI fetch for stop {stop_id} failed: {outcome}")
            result.failed[stop_id] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.responses[stop_id] = outcome.payload
            if outcome.stale:
                result.stale_stop_ids.append(stop_id)
            if result.fetched_at_ms is None or outcome.fetched_at_ms < result.fetched_at_ms:
                result.fetched_at_ms = outcome.fetched_at_ms

    if len(result.failed) == len(ids):
        raise result.failed[ids[0]]

    return result


def seconds_since_last_fetch(feed_key: str) -> int | None:
    """Seconds since a feed key (feed path or "siri_<stopId>") was last fetched."""
    return get_cache().seconds_since_last_fetch(feed_key)


def clear_caches() -> None:
    """Clear all real-time data caches.

    Useful for testing or forcing fresh data on next request.
    """
    if _cache:
        _cache.clear()


def reset_service() -> None:
    """Reset the service state completely.

    Clears caches and resets config. Useful for testing.
    """
    global _cache, _config
    _cache = None
    _config = None
    # Clear the lru_cache on get_transit_config so it re-reads .env/environment
    # (hasattr check handles case where function is mocked in tests)
    if hasattr(get_transit_config, "cache_clear"):
        get_transit_config.cache_clear()
