"""Nearby-stop search and stop-level ranking."""

import math

from realtimebus.data.reference_store import ReferenceDataStore, get_reference_store
from realtimebus.errors import ReferenceDataUnavailable
from realtimebus.models.reference import Stop
from realtimebus.models.responses import GetTransfersResponse, StopArrivals, TransferStop

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000

TRANSFER_RADIUS_METERS = 320
MAX_TRANSFERS = 5


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def find_nearby_stops(
    store: ReferenceDataStore,
    lat: float,
    lon: float,
    radius_meters: float,
) -> list[tuple[Stop, float]]:
    """Find stops within a radius of a point.

    Returns:
        (stop, distance_meters) pairs sorted by distance, nearest first.
    """
    nearby = []
    for stop in store.stops:
        distance = haversine_distance(lat, lon, stop.lat, stop.lon)
        if distance <= radius_meters:
            nearby.append((stop, distance))

    nearby.sort(key=lambda pair: pair[1])
    return nearby


def find_transfers(
    store: ReferenceDataStore,
    stop: Stop,
    radius_meters: float = TRANSFER_RADIUS_METERS,
    limit: int = MAX_TRANSFERS,
) -> list[tuple[Stop, float]]:
    """Find other stops a rider could walk to from `stop` to change buses.

    Only stops served by at least one route count. Nearest first, at most `limit`.
    """
    nearby = find_nearby_stops(store, stop.lat, stop.lon, radius_meters)
    return [
        (other, distance)
        for other, distance in nearby
        if other.stop_id != stop.stop_id and other.routes
    ][:limit]


def get_transfers(stop_id: str) -> GetTransfersResponse:
    """Get transfer stops near a stop from the reference data."""
    try:
        store = get_reference_store()
    except ReferenceDataUnavailable as e:
        return GetTransfersResponse(stop_id=stop_id, available=False, error=str(e))

    stop = store.get_stop(stop_id)
    if stop is None:
        return GetTransfersResponse(stop_id=stop_id, error=f"Unknown stop {stop_id}")

    transfers = [
        TransferStop(stop=other, distance_meters=distance)
        for other, distance in find_transfers(store, stop)
    ]
    return GetTransfersResponse(stop_id=stop_id, transfers=transfers, count=len(transfers))


def rank_stops(stops: list[StopArrivals]) -> list[StopArrivals]:
    """Order stops for a nearby list.

    Stops with at least one upcoming arrival come first; within each group
    nearer stops come first. Exact ties keep their input order.
    """
    return sorted(
        stops,
        key=lambda s: (
            not s.has_upcoming,
            s.distance_meters if s.distance_meters is not None else math.inf,
        ),
    )
