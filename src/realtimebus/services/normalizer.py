"""Convert GTFS-RT trip updates and SIRI stop visits into ArrivalInfo records.

Nothing downstream of this module branches on the upstream shape.
"""

import logging
import math
from collections.abc import Iterable
from datetime import datetime

from realtimebus.data.reference_store import ReferenceDataStore
from realtimebus.models.realtime import GTFSRTFeed
from realtimebus.models.responses import ArrivalInfo, ArrivalSource
from realtimebus.models.siri import MonitoredCall, SiriResponse

logger = logging.getLogger(__name__)


def strip_line_prefix(line_ref: str) -> str:
    """Strip the agency prefix from a SIRI line reference.

    Everything up to and including the first "_" is removed:
    "MTA NYCT_Q17" -> "Q17". References without "_" are returned unchanged.
    """
    _, sep, rest = line_ref.partition("_")
    return rest if sep else line_ref


def strip_vehicle_prefix(vehicle_ref: str | None) -> str | None:
    """Vehicle number from a SIRI vehicle reference: "MTA NYCT_7581" -> "7581"."""
    if not vehicle_ref:
        return None
    return vehicle_ref.rsplit("_", 1)[-1]


def sort_arrivals(arrivals: Iterable[ArrivalInfo]) -> list[ArrivalInfo]:
    """Sort arrivals by effective time, soonest first (stable)."""
    return sorted(arrivals, key=lambda a: a.effective_time if a.effective_time is not None else math.inf)


def normalize_trip_updates(
    feed: GTFSRTFeed, stop_ids: Iterable[str]
) -> dict[str, list[ArrivalInfo]]:
    """Build per-stop arrivals from a trip updates feed.

    Each trip's stop-time updates are flattened; entries for stops outside
    `stop_ids` are skipped and trip-level fields are copied onto each record.

    Args:
        feed: Decoded trip updates feed.
        stop_ids: Stops to collect arrivals for.

    Returns:
        Dict mapping every requested stop ID to its sorted arrivals (possibly empty).
    """
    by_stop: dict[str, list[ArrivalInfo]] = {stop_id: [] for stop_id in stop_ids}
    dropped = 0

    for trip_update in feed.trip_updates:
        trip = trip_update.trip
        vehicle_id = None
        if trip_update.vehicle:
            vehicle_id = trip_update.vehicle.id or trip_update.vehicle.label

        for stu in trip_update.stop_time_update:
            if stu.stop_id is None or stu.stop_id not in by_stop:
                continue

            arrival_time = stu.arrival.time if stu.arrival else None
            departure_time = stu.departure.time if stu.departure else None
            if arrival_time is None and departure_time is None:
                dropped += 1
                continue

            by_stop[stu.stop_id].append(
                ArrivalInfo(
                    trip_id=trip.trip_id,
                    route_id=trip.route_id,
                    direction_id=trip.direction_id,
                    vehicle_id=vehicle_id,
                    stop_sequence=stu.stop_sequence,
                    arrival_time=arrival_time,
                    departure_time=departure_time,
                    schedule_relationship=stu.schedule_relationship,
                    is_scheduled=False,
                    source=ArrivalSource.GTFS_RT,
                )
            )

    if dropped:
        logger.debug(f"Dropped {dropped} stop time updates without arrival or departure time")

    return {stop_id: sort_arrivals(arrivals) for stop_id, arrivals in by_stop.items()}


def _epoch_seconds(value: datetime) -> int:
    return math.floor(value.timestamp())


def _stops_away(call: MonitoredCall) -> int | None:
    count = call.number_of_stops_away
    if count is None and call.extensions and call.extensions.distances:
        count = call.extensions.distances.stops_from_call
    if count is None or count < 0:
        return None
    return count


def _direction_id(direction_ref: str | int | None) -> int | None:
    if direction_ref is None:
        return None
    try:
        return int(direction_ref)
    except ValueError:
        return None


def normalize_siri_visits(response: SiriResponse) -> list[ArrivalInfo]:
    """Build sorted arrivals from one stop's SIRI stop-monitoring response.

    The effective time is the first present of expected arrival, expected
    departure, aimed arrival, aimed departure; visits with none are dropped.
    An arrival is scheduled-only when neither expected time is present.
    """
    arrivals: list[ArrivalInfo] = []
    dropped = 0

    for visit in response.visits:
        journey = visit.monitored_vehicle_journey
        call = journey.monitored_call if journey else None
        if journey is None or call is None:
            dropped += 1
            continue

        expected = call.expected_arrival_time or call.expected_departure_time
        aimed = call.aimed_arrival_time or call.aimed_departure_time
        time_value = expected or aimed
        if time_value is None:
            dropped += 1
            continue

        destination = journey.destination_name
        if isinstance(destination, list):
            destination = destination[0] if destination else None

        trip_id = None
        if journey.framed_vehicle_journey_ref:
            trip_id = journey.framed_vehicle_journey_ref.dated_vehicle_journey_ref

        arrivals.append(
            ArrivalInfo(
                trip_id=trip_id,
                route_id=strip_line_prefix(journey.line_ref or ""),
                headsign=destination or None,
                direction_id=_direction_id(journey.direction_ref),
                vehicle_id=strip_vehicle_prefix(journey.vehicle_ref),
                arrival_time=_epoch_seconds(time_value),
                stops_away=_stops_away(call),
                schedule_relationship="SCHEDULED" if expected is None else "REALTIME",
                is_scheduled=expected is None,
                source=ArrivalSource.SIRI,
            )
        )

    if dropped:
        logger.debug(f"Dropped {dropped} SIRI visits without a usable time")

    return sort_arrivals(arrivals)


def resolve_headsign(arrival: ArrivalInfo, store: ReferenceDataStore | None) -> str | None:
    """Best headsign for an arrival.

    The record's own headsign wins; otherwise the static headsign for its
    route and direction; otherwise None.
    """
    if arrival.headsign:
        return arrival.headsign
    if store is not None and arrival.route_id and arrival.direction_id is not None:
        return store.get_headsign(arrival.route_id, arrival.direction_id)
    return None


def with_resolved_headsigns(
    arrivals: list[ArrivalInfo], store: ReferenceDataStore | None
) -> list[ArrivalInfo]:
    """Copies of the arrivals with headsigns filled from the static table where missing."""
    resolved = []
    for arrival in arrivals:
        headsign = resolve_headsign(arrival, store)
        if headsign != arrival.headsign:
            arrival = arrival.model_copy(update={"headsign": headsign})
        resolved.append(arrival)
    return resolved
