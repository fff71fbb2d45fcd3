"""Live vehicle lookups and trip timelines from the GTFS-RT feeds."""

import logging
import time

from realtimebus.data.reference_store import ReferenceDataStore, get_reference_store
from realtimebus.errors import ReferenceDataUnavailable, UpstreamError
from realtimebus.models.realtime import StopTimeUpdate, TripUpdate, VehiclePosition
from realtimebus.models.responses import (
    GetTripTimelineResponse,
    GetVehicleResponse,
    TripTimelineStop,
)
from realtimebus.services import realtime_service

logger = logging.getLogger(__name__)

# a stop counts as passed once its time is this far behind
PASSED_GRACE_SECONDS = 30


def find_vehicle_for_trip(vehicles: list[VehiclePosition], trip_id: str) -> VehiclePosition | None:
    for vehicle in vehicles:
        if vehicle.trip and vehicle.trip.trip_id == trip_id:
            return vehicle
    return None


def find_trip_update(trip_updates: list[TripUpdate], trip_id: str) -> TripUpdate | None:
    for trip_update in trip_updates:
        if trip_update.trip.trip_id == trip_id:
            return trip_update
    return None


async def get_vehicle_for_trip(trip_id: str) -> GetVehicleResponse:
    """Get the live position of the vehicle serving a trip.

    Returns:
        GetVehicleResponse; vehicle is None when the trip is not in the feed,
        api_available is False when the feed could not be read at all.
    """
    try:
        result = await realtime_service.get_vehicle_positions()
    except UpstreamError as e:
        logger.warning(f"Failed to fetch vehicle positions: {e}")
        return GetVehicleResponse(trip_id=trip_id, api_available=False)

    return GetVehicleResponse(
        trip_id=trip_id,
        vehicle=find_vehicle_for_trip(result.payload.vehicles, trip_id),
        api_available=True,
    )


def _event_time(update: StopTimeUpdate) -> int | None:
    for event in (update.arrival, update.departure):
        if event is not None and event.time:
            return event.time
    return None


def build_timeline(
    updates: list[StopTimeUpdate],
    now: int,
    vehicle_stop_id: str | None = None,
    store: ReferenceDataStore | None = None,
) -> list[TripTimelineStop]:
    """Annotate a trip's stop-time updates for display.

    The next stop is the first one timed after `now`. A timed stop is past once
    it is more than 30 seconds behind `now`; an untimed stop is past when it
    comes before the next stop.
    """
    times = [_event_time(u) for u in updates]
    next_index = next((i for i, t in enumerate(times) if t is not None and t > now), None)

    timeline = []
    for index, (update, event_time) in enumerate(zip(updates, times)):
        if event_time is not None:
            is_past = event_time < now - PASSED_GRACE_SECONDS
        else:
            is_past = next_index is not None and index < next_index

        stop = store.get_stop(update.stop_id) if store and update.stop_id else None
        timeline.append(
            TripTimelineStop(
                stop_id=update.stop_id,
                stop_name=stop.name if stop else None,
                stop_sequence=update.stop_sequence,
                arrival_time=update.arrival.time if update.arrival else None,
                departure_time=update.departure.time if update.departure else None,
                schedule_relationship=update.schedule_relationship,
                is_past=is_past,
                is_next=index == next_index,
                is_vehicle_here=vehicle_stop_id is not None and update.stop_id == vehicle_stop_id,
            )
        )
    return timeline


async def get_trip_timeline(trip_id: str, now: int | None = None) -> GetTripTimelineResponse:
    """Get a trip's stop-by-stop timeline with the live vehicle's current stop.

    Stops keep the order of the trip updates feed. Stop names come from the
    reference data when it is loaded. A vehicle positions failure only loses
    the vehicle; a trip updates failure makes the whole response unavailable.
    """
    query_time = int(now if now is not None else time.time())

    try:
        trips = await realtime_service.get_trip_updates()
    except UpstreamError as e:
        logger.warning(f"Failed to fetch trip updates: {e}")
        return GetTripTimelineResponse(trip_id=trip_id, query_time=query_time, api_available=False)

    stale = trips.stale
    vehicle = None
    try:
        vehicles = await realtime_service.get_vehicle_positions()
        vehicle = find_vehicle_for_trip(vehicles.payload.vehicles, trip_id)
        stale = stale or vehicles.stale
    except UpstreamError as e:
        logger.warning(f"Failed to fetch vehicle positions for trip {trip_id}: {e}")

    trip_update = find_trip_update(trips.payload.trip_updates, trip_id)
    if trip_update is None:
        logger.debug(f"Trip {trip_id} not in trip updates feed")
        return GetTripTimelineResponse(
            trip_id=trip_id,
            vehicle=vehicle,
            current_stop_id=vehicle.stop_id if vehicle else None,
            stale=stale,
            query_time=query_time,
            api_available=True,
        )

    try:
        store = get_reference_store()
    except ReferenceDataUnavailable as e:
        logger.warning(f"Reference data unavailable, stop names omitted: {e}")
        store = None

    current_stop_id = vehicle.stop_id if vehicle else None
    return GetTripTimelineResponse(
        trip_id=trip_id,
        route_id=trip_update.trip.route_id,
        found=True,
        stops=build_timeline(trip_update.stop_time_update, query_time, current_stop_id, store),
        current_stop_id=current_stop_id,
        vehicle=vehicle,
        stale=stale,
        query_time=query_time,
        api_available=True,
    )
