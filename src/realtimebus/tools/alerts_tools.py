from realtimebus.app import mcp
from realtimebus.models.responses import GetServiceAlertsResponse
from realtimebus.services.alerts_service import (
    get_service_alerts as _get_service_alerts,
)


@mcp.tool()
async def get_service_alerts(
    route_ids: list[str] | None = None,
    stop_ids: list[str] | None = None,
    limit: int = 50,
) -> GetServiceAlertsResponse:
    """Get service alerts for bus routes and stops.

    Args:
        route_ids: Only alerts naming any of these routes (e.g., ["Q17", "M15"]).
        stop_ids: Only alerts naming any of these stops.
        limit: Maximum number of alerts to return (1-100, default: 50).

    Returns:
        GetServiceAlertsResponse. api_available is False when the alerts feed
        could not be read.
    """
    # Validate and clamp limit to 1-100
    limit = max(1, min(100, limit))

    return await _get_service_alerts(route_ids=route_ids, stop_ids=stop_ids, limit=limit)
