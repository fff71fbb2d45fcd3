"""Arrivals service: resolution and ranking of per-stop arrivals.

Turns one upstream source (GTFS-RT trip updates or SIRI stop monitoring) into
sorted, headsign-resolved arrivals per stop, then into direction groups
annotated with catchability and leave-in labels for a rider walking from a
known distance.

Sources are alternatives, not merged: a request picks one, and no
deduplication by trip_id happens across them.

Graceful degradation:
- a failed refresh serves the last cached data with stale=True
- with no data at all the response has available=False and an error message
"""

import logging
import time

from realtimebus.data.config import get_transit_config
from realtimebus.data.reference_store import ReferenceDataStore, get_reference_store
from realtimebus.errors import ReferenceDataUnavailable, UpstreamError
from realtimebus.models.reference import Stop
from realtimebus.models.responses import (
    ArrivalClassification,
    ArrivalInfo,
    ArrivalSource,
    ClassifiedArrival,
    DirectionGroup,
    GetArrivalsResponse,
    GetNearbyArrivalsResponse,
    StopArrivals,
)
from realtimebus.services import realtime_service
from realtimebus.services.normalizer import (
    normalize_siri_visits,
    normalize_trip_updates,
    with_resolved_headsigns,
)
from realtimebus.services.stop_service import (
    find_nearby_stops,
    haversine_distance,
    rank_stops,
)
from realtimebus.services.timing import (
    format_arrival,
    format_leave_in,
    is_catchable,
    is_departed,
    is_terminal,
    walk_time_seconds,
)

logger = logging.getLogger(__name__)

# Group key for arrivals without a resolvable headsign
UNKNOWN_DIRECTION = "Unknown"


def get_walk_time(distance_meters: float) -> float:
    """Walking time in seconds for a distance in meters."""
    return walk_time_seconds(distance_meters)


def classify_arrival(effective_time: float, walk_time_sec: float, now: float) -> ArrivalClassification:
    """Leave-in label and catchability for one arrival.

    Args:
        effective_time: Arrival (or departure) unix timestamp.
        walk_time_sec: Rider's walking time to the stop.
        now: Current unix timestamp.

    Returns:
        ArrivalClassification with the leave-in label and catchable flag.
    """
    return ArrivalClassification(
        label=format_leave_in(effective_time, walk_time_sec, now),
        catchable=is_catchable(effective_time, walk_time_sec, now),
    )


def _classify(
    arrival: ArrivalInfo,
    walk_time_sec: float,
    now: float,
    store: ReferenceDataStore | None,
) -> ClassifiedArrival:
    effective_time = arrival.effective_time
    classification = classify_arrival(effective_time, walk_time_sec, now)
    route_colors = None
    if store is not None and arrival.route_id:
        route_colors = store.route_colors(arrival.route_id)

    return ClassifiedArrival(
        arrival=arrival,
        effective_time=effective_time,
        label=classification.label,
        arrival_label=format_arrival(effective_time, now),
        catchable=classification.catchable,
        departed=is_departed(effective_time, now),
        route_colors=route_colors,
    )


def group_by_direction(arrivals: list[ClassifiedArrival], now: float) -> list[DirectionGroup]:
    """Partition arrivals by headsign, dropping directions with nothing still relevant.

    Arrivals without a headsign share one Unknown group, separate from any real
    headsign. A group is dropped when every arrival in it is more than two
    minutes in the past. Groups appear in the order of their first arrival.
    """
    groups: dict[str | None, list[ClassifiedArrival]] = {}
    for classified in arrivals:
        groups.setdefault(classified.arrival.headsign, []).append(classified)

    return [
        DirectionGroup(
            key=headsign if headsign is not None else UNKNOWN_DIRECTION,
            headsign=headsign,
            arrivals=rows,
        )
        for headsign, rows in groups.items()
        if any(not is_terminal(row.effective_time, now) for row in rows)
    ]


def build_stop_arrivals(
    stop_id: str,
    arrivals: list[ArrivalInfo],
    now: float,
    stop: Stop | None = None,
    distance_meters: float | None = None,
    store: ReferenceDataStore | None = None,
) -> StopArrivals:
    """Build the display-ready view of one stop.

    Args:
        stop_id: The stop ID.
        arrivals: Normalized, headsign-resolved arrivals sorted by effective time.
        now: Current unix timestamp.
        stop: Reference data for the stop, if known.
        distance_meters: Rider's distance to the stop; without it walk time is zero.
        store: Reference data used for route colors.

    Returns:
        StopArrivals with direction groups and walk time.
    """
    walk_time_sec = walk_time_seconds(distance_meters) if distance_meters is not None else None
    classified = [_classify(a, walk_time_sec or 0.0, now, store) for a in arrivals]

    return StopArrivals(
        stop_id=stop_id,
        stop=stop,
        distance_meters=distance_meters,
        walk_time_sec=walk_time_sec,
        directions=group_by_direction(classified, now),
        has_upcoming=any(not is_terminal(c.effective_time, now) for c in classified),
    )


def _optional_store() -> ReferenceDataStore | None:
    try:
        return get_reference_store()
    except ReferenceDataUnavailable as e:
        logger.warning(f"Reference data unavailable, headsign fallback disabled: {e}")
        return None


async def get_arrivals(
    stop_ids: list[str],
    source: ArrivalSource = ArrivalSource.SIRI,
    now: int | None = None,
) -> GetArrivalsResponse:
    """Get normalized arrivals for a set of stops from one source.

    Args:
        stop_ids: Stops to get arrivals for. SIRI requests are capped at the
            configured batch limit.
        source: Upstream to read.
        now: Query time as a unix timestamp (default: current time).

    Returns:
        GetArrivalsResponse mapping each stop to arrivals sorted by effective time.
        available=False when the source failed and nothing was cached.
    """
    query_time = int(now if now is not None else time.time())
    store = _optional_store()

    try:
        if source == ArrivalSource.SIRI:
            batch = await realtime_service.get_siri_batch(stop_ids)
            arrivals = {
                stop_id: normalize_siri_visits(batch.responses[stop_id])
                if stop_id in batch.responses
                else []
                for stop_id in batch.stop_ids
            }
            stale = batch.stale
            fetched_at_ms = batch.fetched_at_ms
            failed_stop_ids = list(batch.failed)
        else:
            ids = list(dict.fromkeys(s for s in stop_ids if s))
            if not ids:
                return GetArrivalsResponse(source=source, query_time=query_time)
            result = await realtime_service.get_trip_updates()
            arrivals = normalize_trip_updates(result.payload, ids)
            stale = result.stale
            fetched_at_ms = result.fetched_at_ms
            failed_stop_ids = []
    except UpstreamError as e:
        logger.warning(f"Arrivals unavailable from {source.value}: {e}")
        return GetArrivalsResponse(
            source=source,
            available=False,
            error=str(e),
            query_time=query_time,
        )

    return GetArrivalsResponse(
        source=source,
        arrivals={
            stop_id: with_resolved_headsigns(rows, store) for stop_id, rows in arrivals.items()
        },
        stale=stale,
        fetched_at_ms=fetched_at_ms,
        failed_stop_ids=failed_stop_ids,
        query_time=query_time,
    )


async def _ranked_arrivals(
    stops: list[tuple[Stop | None, str, float | None]],
    source: ArrivalSource,
    now: int | None,
    store: ReferenceDataStore | None,
) -> GetNearbyArrivalsResponse:
    response = await get_arrivals([stop_id for _, stop_id, _ in stops], source, now)
    if not response.available:
        return GetNearbyArrivalsResponse(
            source=source,
            count=0,
            available=False,
            error=response.error,
            query_time=response.query_time,
        )

    results = [
        build_stop_arrivals(
            stop_id,
            response.arrivals[stop_id],
            response.query_time,
            stop=stop,
            distance_meters=distance,
            store=store,
        )
        for stop, stop_id, distance in stops
        # SIRI batches may have been truncated
        if stop_id in response.arrivals
    ]
    ranked = rank_stops(results)

    return GetNearbyArrivalsResponse(
        source=source,
        stops=ranked,
        count=len(ranked),
        stale=response.stale,
        query_time=response.query_time,
    )


async def get_nearby_arrivals(
    lat: float,
    lon: float,
    radius_meters: float | None = None,
    source: ArrivalSource = ArrivalSource.SIRI,
    now: int | None = None,
) -> GetNearbyArrivalsResponse:
    """Get ranked, direction-grouped arrivals for stops near a rider.

    Args:
        lat: Rider latitude.
        lon: Rider longitude.
        radius_meters: Search radius (default from config, 560m).
        source: Upstream to read.
        now: Query time as a unix timestamp (default: current time).

    Returns:
        GetNearbyArrivalsResponse with stops that have upcoming arrivals first,
        nearest first within each group.
    """
    if radius_meters is None:
        radius_meters = get_transit_config().nearby_radius_meters

    try:
        store = get_reference_store()
    except ReferenceDataUnavailable as e:
        return GetNearbyArrivalsResponse(
            source=source,
            count=0,
            available=False,
            error=str(e),
            query_time=int(now if now is not None else time.time()),
        )

    nearby = find_nearby_stops(store, lat, lon, radius_meters)
    return await _ranked_arrivals(
        [(stop, stop.stop_id, distance) for stop, distance in nearby], source, now, store
    )


async def get_stop_arrivals(
    stop_ids: list[str],
    source: ArrivalSource = ArrivalSource.SIRI,
    lat: float | None = None,
    lon: float | None = None,
    now: int | None = None,
) -> GetNearbyArrivalsResponse:
    """Get direction-grouped arrivals for specific stops.

    When the rider position is given, walk times come from the distance to
    each stop; otherwise walk time is zero and stops keep their input order
    within each ranking group.
    """
    store = _optional_store()
    stops: list[tuple[Stop | None, str, float | None]] = []
    for stop_id in dict.fromkeys(stop_ids):
        stop = store.get_stop(stop_id) if store else None
        distance = None
        if stop is not None and lat is not None and lon is not None:
            distance = haversine_distance(lat, lon, stop.lat, stop.lon)
        stops.append((stop, stop_id, distance))

    return await _ranked_arrivals(stops, source, now, store)
