import json

import httpx
from pydantic import ValidationError

from realtimebus.data.config import TransitConfig
from realtimebus.errors import UpstreamError
from realtimebus.models.siri import SiriResponse


class SiriClient:
    """Async HTTP client for the SIRI stop-monitoring API.

    Usage:
        async with SiriClient(config) as client:
            response = await client.fetch_stop_monitoring("302555")
    """

    def __init__(self, config: TransitConfig):
        """Initialize the client.

        Args:
            config: Configuration with API key, SIRI base URL and timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "SiriClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._config.request_timeout_seconds)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _params(self, stop_id: str) -> dict[str, str | int]:
        params: dict[str, str | int] = {
            "version": 2,
            "OperatorRef": "MTA",
            "MonitoringRef": stop_id,
            "MinimumStopVisitsPerLine": self._config.siri_min_visits_per_line,
        }
        # the key travels as a query parameter on this API
        if self._config.siri_api_key:
            params["key"] = self._config.siri_api_key
        return params

    async def fetch_stop_monitoring(self, stop_id: str) -> SiriResponse:
        """Fetch and parse stop-monitoring data for one stop.

        Args:
            stop_id: The stop ID to monitor.

        Returns:
            SiriResponse with the stop's monitored visits.

        Raises:
            RuntimeError: If client not initialized.
            UpstreamError: On non-2xx status, transport error, timeout or malformed JSON.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        url = f"{self._config.siri_base_url}/stop-monitoring.json"
        try:
            response = await self._client.get(url, params=self._params(stop_id))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamError(
                f"SIRI returned {status} for stop {stop_id}", status=status, stop_id=stop_id
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"SIRI request for stop {stop_id} failed: {e!r}", stop_id=stop_id
            ) from e

        try:
            return SiriResponse.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise UpstreamError(
                f"Malformed SIRI response for stop {stop_id}",
                status=response.status_code,
                stop_id=stop_id,
            ) from e
