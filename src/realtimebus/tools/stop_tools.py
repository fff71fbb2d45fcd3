from realtimebus.app import mcp
from realtimebus.models.responses import GetTransfersResponse
from realtimebus.services.stop_service import get_transfers as _get_transfers


@mcp.tool()
def get_transfers(stop_id: str) -> GetTransfersResponse:
    """Get nearby stops to transfer to from a stop.

    Up to 5 other stops within 320m that are served by at least one route,
    nearest first.

    Args:
        stop_id: Stop ID (e.g., "302555").

    Returns:
        GetTransfersResponse. available is False when reference data is not loaded.
    """
    return _get_transfers(stop_id)
