import time

from realtimebus.app import mcp
from realtimebus.models.responses import (
    ArrivalClassification,
    ArrivalSource,
    FeedStalenessResponse,
    GetArrivalsResponse,
    GetNearbyArrivalsResponse,
    WalkTimeResponse,
)
from realtimebus.services import arrivals_service, realtime_service


@mcp.tool()
async def get_arrivals(
    stop_ids: list[str],
    source: ArrivalSource = ArrivalSource.SIRI,
) -> GetArrivalsResponse:
    """Get upcoming bus arrivals for one or more stops.

    Arrivals for each stop are sorted soonest first and carry a headsign
    (from the live feed, or the static route direction when missing).

    Args:
        stop_ids: Stop IDs (e.g., ["302555", "302556"]). SIRI requests use at most 20.
        source: "siri" (Bus Time stop monitoring, default) or "gtfs_rt" (trip updates).

    Returns:
        GetArrivalsResponse. If available is False, no data could be loaded at all;
        if stale is True, data comes from cache after a failed refresh.
    """
    return await arrivals_service.get_arrivals(stop_ids=stop_ids, source=source)


@mcp.tool()
async def get_nearby_arrivals(
    lat: float,
    lon: float,
    radius_meters: float | None = None,
    source: ArrivalSource = ArrivalSource.SIRI,
) -> GetNearbyArrivalsResponse:
    """Get what to catch and when to leave for stops near a location.

    Stops with upcoming buses come first, nearest first. Each stop's arrivals
    are grouped by direction, with "leave in N min" labels based on walking time
    at 1.33 m/s and a catchable flag (30s safety buffer).

    Args:
        lat: Latitude of the rider.
        lon: Longitude of the rider.
        radius_meters: Search radius (defaults to the configured nearby radius,
            560m or about a 7 minute walk; max 2000m).
        source: "siri" (default) or "gtfs_rt".

    Returns:
        GetNearbyArrivalsResponse with ranked stops.
    """
    if radius_meters is not None:
        radius_meters = max(1.0, min(2000.0, radius_meters))

    return await arrivals_service.get_nearby_arrivals(
        lat=lat, lon=lon, radius_meters=radius_meters, source=source
    )


@mcp.tool()
async def get_stop_arrivals(
    stop_ids: list[str],
    lat: float | None = None,
    lon: float | None = None,
    source: ArrivalSource = ArrivalSource.SIRI,
) -> GetNearbyArrivalsResponse:
    """Get direction-grouped arrivals for specific stops.

    Args:
        stop_ids: Stop IDs to show.
        lat: Optional rider latitude, used for walking time.
        lon: Optional rider longitude, used for walking time.
        source: "siri" (default) or "gtfs_rt".

    Returns:
        GetNearbyArrivalsResponse with the requested stops ranked.
    """
    return await arrivals_service.get_stop_arrivals(
        stop_ids=stop_ids, source=source, lat=lat, lon=lon
    )


@mcp.tool()
def classify_arrival(
    effective_time: int,
    walk_time_sec: float,
    now: int | None = None,
) -> ArrivalClassification:
    """Work out when to leave for a bus.

    Args:
        effective_time: Bus arrival time as a unix timestamp.
        walk_time_sec: Walking time to the stop in seconds.
        now: Current unix timestamp (default: now).

    Returns:
        ArrivalClassification with a label ("departed", "arriving", "leave now",
        "leave in N min") and whether the bus is catchable.
    """
    if now is None:
        now = int(time.time())
    return arrivals_service.classify_arrival(effective_time, walk_time_sec, now)


@mcp.tool()
def get_walk_time(distance_meters: float) -> WalkTimeResponse:
    """Convert a walking distance in meters to seconds (1.33 m/s)."""
    return WalkTimeResponse(
        distance_meters=distance_meters,
        walk_time_sec=arrivals_service.get_walk_time(distance_meters),
    )


@mcp.tool()
def get_feed_staleness(feed_key: str) -> FeedStalenessResponse:
    """Seconds since a feed was last fetched successfully.

    Args:
        feed_key: "/tripUpdates", "/vehiclePositions", "/alerts", or "siri_<stopId>".
    """
    return FeedStalenessResponse(
        feed_key=feed_key,
        seconds_since_last_fetch=realtime_service.seconds_since_last_fetch(feed_key),
    )
