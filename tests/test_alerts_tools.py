"""Tests for the alerts MCP tools."""

from unittest.mock import AsyncMock, patch

import pytest

from realtimebus.models.responses import GetServiceAlertsResponse, ServiceAlert
from realtimebus.tools.alerts_tools import get_service_alerts


def _create_mock_alerts_response(count: int) -> GetServiceAlertsResponse:
    """Create a mock service alerts response."""
    alerts = [
        ServiceAlert(
            id=f"alert_{i}",
            header=f"Q{i} detour",
            effect="DETOUR",
            route_ids=[f"Q{i}"],
        )
        for i in range(count)
    ]
    return GetServiceAlertsResponse(
        alerts=alerts,
        count=count,
        total_count=count,
        timestamp=1700000000,
        api_available=True,
    )


@pytest.mark.asyncio
async def test_get_service_alerts_returns_response():
    """get_service_alerts should return the service response."""
    mock_response = _create_mock_alerts_response(5)

    with patch(
        "realtimebus.tools.alerts_tools._get_service_alerts",
        new=AsyncMock(return_value=mock_response),
    ):
        result = await get_service_alerts()

    assert result.api_available is True
    assert result.count == 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("limit", "expected"),
    [
        (0, 1),
        (500, 100),
        (25, 25),
    ],
)
async def test_get_service_alerts_clamps_limit(limit: int, expected: int):
    """get_service_alerts should clamp limit to 1-100."""
    mock_response = _create_mock_alerts_response(1)

    with patch(
        "realtimebus.tools.alerts_tools._get_service_alerts",
        new=AsyncMock(return_value=mock_response),
    ) as mock_service:
        await get_service_alerts(limit=limit)

    mock_service.assert_called_once()
    call_kwargs = mock_service.call_args.kwargs
    assert call_kwargs["limit"] == expected


@pytest.mark.asyncio
async def test_get_service_alerts_passes_filters():
    """get_service_alerts should pass filters to the service."""
    mock_response = _create_mock_alerts_response(1)

    with patch(
        "realtimebus.tools.alerts_tools._get_service_alerts",
        new=AsyncMock(return_value=mock_response),
    ) as mock_service:
        await get_service_alerts(route_ids=["Q17"], stop_ids=["302555"])

    call_kwargs = mock_service.call_args.kwargs
    assert call_kwargs["route_ids"] == ["Q17"]
    assert call_kwargs["stop_ids"] == ["302555"]
