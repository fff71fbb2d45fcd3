from realtimebus.app import mcp
from realtimebus.models.responses import GetTripTimelineResponse, GetVehicleResponse
from realtimebus.services.vehicle_service import get_trip_timeline as _get_trip_timeline
from realtimebus.services.vehicle_service import get_vehicle_for_trip as _get_vehicle_for_trip


@mcp.tool()
async def get_vehicle_for_trip(trip_id: str) -> GetVehicleResponse:
    """Get the live position of the bus serving a trip.

    Args:
        trip_id: Trip ID from an arrival (GTFS-RT source).

    Returns:
        GetVehicleResponse; vehicle is empty when the trip has no live position.
    """
    return await _get_vehicle_for_trip(trip_id)


@mcp.tool()
async def get_trip_timeline(trip_id: str) -> GetTripTimelineResponse:
    """Get the stop-by-stop timeline of a trip with live predicted times.

    Args:
        trip_id: Trip ID from an arrival (GTFS-RT source).

    Returns:
        GetTripTimelineResponse. Stops are in trip order with names, past/next
        flags and the stop the live bus reports as current. found is False when
        the trip is not in the trip updates feed.
    """
    return await _get_trip_timeline(trip_id)
