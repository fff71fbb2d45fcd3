"""Tests for the SIRI stop-monitoring client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from realtimebus.data.config import TransitConfig
from realtimebus.data.siri_client import SiriClient
from realtimebus.errors import UpstreamError


def create_siri_response() -> dict:
    """Create a sample stop-monitoring response for testing."""
    return {
        "Siri": {
            "ServiceDelivery": {
                "ResponseTimestamp": "2023-11-14T17:13:20.000-05:00",
                "StopMonitoringDelivery": [
                    {
                        "MonitoredStopVisit": [
                            {
                                "MonitoredVehicleJourney": {
                                    "LineRef": "MTA NYCT_Q17",
                                    "DirectionRef": "1",
                                    "VehicleRef": "MTA NYCT_7581",
                                    "DestinationName": ["FLUSHING MAIN ST STA"],
                                    "FramedVehicleJourneyRef": {
                                        "DataFrameRef": "2023-11-14",
                                        "DatedVehicleJourneyRef": "MTA NYCT_JA_D3-Weekday-SDon-094500_Q17_410",
                                    },
                                    "MonitoredCall": {
                                        "ExpectedArrivalTime": "2023-11-14T17:15:20.000-05:00",
                                        "AimedArrivalTime": "2023-11-14T17:14:00.000-05:00",
                                        "NumberOfStopsAway": 3,
                                        "Extensions": {
                                            "Distances": {
                                                "StopsFromCall": 3,
                                                "PresentableDistance": "3 stops away",
                                            }
                                        },
                                    },
                                }
                            }
                        ]
                    }
                ],
            }
        }
    }


@pytest.fixture
def config() -> TransitConfig:
    """Create a test config."""
    return TransitConfig(
        BUSTIME_API_KEY="bustime_key",
        siri_base_url="https://example.com/api/siri",
    )


def _mock_client(mock_client_class: MagicMock, response: MagicMock) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(return_value=response)
    mock_client_class.return_value = mock_client
    return mock_client


@pytest.mark.asyncio
async def test_fetch_stop_monitoring_parses_json(config: TransitConfig):
    """Test parsing stop-monitoring visits from JSON."""
    mock_response = MagicMock()
    mock_response.json.return_value = create_siri_response()

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            data = await client.fetch_stop_monitoring("302555")

    assert len(data.visits) == 1
    journey = data.visits[0].monitored_vehicle_journey
    assert journey.line_ref == "MTA NYCT_Q17"
    assert journey.direction_ref == "1"
    assert journey.destination_name == ["FLUSHING MAIN ST STA"]
    assert journey.framed_vehicle_journey_ref.dated_vehicle_journey_ref.endswith("_Q17_410")

    call = journey.monitored_call
    assert call.expected_arrival_time.timestamp() == 1700000120
    assert call.number_of_stops_away == 3
    assert call.extensions.distances.stops_from_call == 3


@pytest.mark.asyncio
async def test_fetch_stop_monitoring_sends_query_params(config: TransitConfig):
    """The stop, operator, version and key are sent as query parameters."""
    mock_response = MagicMock()
    mock_response.json.return_value = create_siri_response()

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            await client.fetch_stop_monitoring("302555")

    args, kwargs = mock_client.get.call_args
    assert args[0] == "https://example.com/api/siri/stop-monitoring.json"
    assert kwargs["params"] == {
        "version": 2,
        "OperatorRef": "MTA",
        "MonitoringRef": "302555",
        "MinimumStopVisitsPerLine": 2,
        "key": "bustime_key",
    }


@pytest.mark.asyncio
async def test_key_falls_back_to_gtfsrt_key():
    """Without a Bus Time key, the GTFS-RT key is used."""
    config = TransitConfig(MTA_API_KEY="shared_key", BUSTIME_API_KEY=None)
    mock_response = MagicMock()
    mock_response.json.return_value = create_siri_response()

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            await client.fetch_stop_monitoring("302555")

    assert mock_client.get.call_args.kwargs["params"]["key"] == "shared_key"


@pytest.mark.asyncio
async def test_no_key_param_without_any_key():
    """No key parameter is sent when no key is configured."""
    config = TransitConfig(MTA_API_KEY=None, BUSTIME_API_KEY=None)
    mock_response = MagicMock()
    mock_response.json.return_value = create_siri_response()

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            await client.fetch_stop_monitoring("302555")

    assert "key" not in mock_client.get.call_args.kwargs["params"]


@pytest.mark.asyncio
async def test_empty_delivery_has_no_visits(config: TransitConfig):
    """A response without deliveries yields no visits rather than an error."""
    mock_response = MagicMock()
    mock_response.json.return_value = {"Siri": {"ServiceDelivery": {}}}

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            data = await client.fetch_stop_monitoring("302555")

    assert data.visits == []


@pytest.mark.asyncio
async def test_malformed_visit_does_not_fail_the_stop(config: TransitConfig):
    """A visit with an unparseable time is dropped; the good visit is kept."""
    payload = create_siri_response()
    delivery = payload["Siri"]["ServiceDelivery"]["StopMonitoringDelivery"][0]
    delivery["MonitoredStopVisit"].append(
        {
            "MonitoredVehicleJourney": {
                "LineRef": "MTA NYCT_Q27",
                "MonitoredCall": {"ExpectedArrivalTime": "not-a-time"},
            }
        }
    )
    mock_response = MagicMock()
    mock_response.json.return_value = payload

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            data = await client.fetch_stop_monitoring("302555")

    assert len(data.visits) == 1
    assert data.visits[0].monitored_vehicle_journey.line_ref == "MTA NYCT_Q17"


@pytest.mark.asyncio
async def test_malformed_json_raises_upstream_error(config: TransitConfig):
    """An unparseable body becomes UpstreamError naming the stop."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.fetch_stop_monitoring("302555")

    assert exc_info.value.stop_id == "302555"
    assert exc_info.value.status == 200


@pytest.mark.asyncio
async def test_unexpected_shape_raises_upstream_error(config: TransitConfig):
    """JSON that does not match the SIRI shape becomes UpstreamError."""
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"Siri": {"ServiceDelivery": {"StopMonitoringDelivery": "x"}}}

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            with pytest.raises(UpstreamError):
                await client.fetch_stop_monitoring("302555")


@pytest.mark.asyncio
async def test_status_error_raises_upstream_error(config: TransitConfig):
    """A non-2xx response becomes UpstreamError with its status."""
    mock_response = MagicMock()
    mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Forbidden",
        request=httpx.Request("GET", "https://example.com/api/siri/stop-monitoring.json"),
        response=httpx.Response(403),
    )

    with patch("httpx.AsyncClient") as mock_client_class:
        _mock_client(mock_client_class, mock_response)

        async with SiriClient(config) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.fetch_stop_monitoring("302555")

    assert exc_info.value.status == 403
    assert exc_info.value.stop_id == "302555"


@pytest.mark.asyncio
async def test_client_requires_async_context(config: TransitConfig):
    """Test that client methods fail without async context."""
    client = SiriClient(config)

    with pytest.raises(RuntimeError, match="Client not initialized"):
        await client.fetch_stop_monitoring("302555")
