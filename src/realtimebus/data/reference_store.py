"""Read-only stops/routes/headsigns tables produced by the static GTFS ETL job.

The tables are loaded once per process from a directory containing:
    stops.json             list of {stopId, name, lat, lon, routes}
    routes.json            list of {routeId, routeShortName, routeLongName, routeColor, routeTextColor}
    route-headsigns.json   {routeId: {"0": headsign, "1": headsign}} (optional)
"""

import json
import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from realtimebus.data.config import get_transit_config
from realtimebus.errors import ReferenceDataUnavailable
from realtimebus.models.reference import Route, RouteColors, Stop

logger = logging.getLogger(__name__)

STOPS_FILE = "stops.json"
ROUTES_FILE = "routes.json"
HEADSIGNS_FILE = "route-headsigns.json"

# lightseagreen, used for routes without a color in the feed
DEFAULT_ROUTE_COLOR = "20B2AA"

_stops_adapter = TypeAdapter(list[Stop])
_routes_adapter = TypeAdapter(list[Route])
_headsigns_adapter = TypeAdapter(dict[str, dict[str, str]])


def hex_to_rgb(hex_color: str) -> tuple[int, int, int] | None:
    """Convert a hex triplet ("1A2B3C" or "#1A2B3C") to an (r, g, b) tuple."""
    h = hex_color.lstrip("#")
    if len(h) != 6:
        return None
    try:
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    except ValueError:
        return None


def contrast_color(bg_hex: str) -> str:
    """Pick a legible text color (black or white) for a background color."""
    rgb = hex_to_rgb(bg_hex)
    if rgb is None:
        return "FFFFFF"
    r, g, b = rgb
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "000000" if luminance > 0.5 else "FFFFFF"


class ReferenceDataStore:
    """Immutable lookup maps for stops, routes and per-direction headsigns."""

    def __init__(
        self,
        stops: list[Stop],
        routes: list[Route],
        headsigns: dict[str, dict[str, str]] | None = None,
    ):
        self._stops = {stop.stop_id: stop for stop in stops}
        self._routes = {route.route_id: route for route in routes}
        self._headsigns = headsigns or {}

    @classmethod
    def load(cls, data_dir: Path) -> "ReferenceDataStore":
        """Load the reference tables from a directory.

        Args:
            data_dir: Directory holding stops.json, routes.json and optionally
                route-headsigns.json.

        Returns:
            A populated ReferenceDataStore.

        Raises:
            ReferenceDataUnavailable: If a required table is missing or invalid.
        """
        headsigns_path = data_dir / HEADSIGNS_FILE
        try:
            stops = _stops_adapter.validate_python(_read_json(data_dir / STOPS_FILE))
            routes = _routes_adapter.validate_python(_read_json(data_dir / ROUTES_FILE))

            headsigns: dict[str, dict[str, str]] = {}
            if headsigns_path.exists():
                headsigns = _headsigns_adapter.validate_python(_read_json(headsigns_path))
            else:
                logger.info(f"{headsigns_path} not found, headsign fallback disabled")
        except ValidationError as e:
            raise ReferenceDataUnavailable(f"Invalid reference data in {data_dir}: {e}") from e

        logger.info(f"Loaded {len(stops)} stops and {len(routes)} routes from {data_dir}")
        return cls(stops, routes, headsigns)

    @property
    def stops(self) -> list[Stop]:
        return list(self._stops.values())

    def get_stop(self, stop_id: str) -> Stop | None:
        return self._stops.get(stop_id)

    def get_route(self, route_id: str) -> Route | None:
        return self._routes.get(route_id)

    def get_headsign(self, route_id: str, direction_id: int) -> str | None:
        """Static headsign for a route direction (0 or 1), None if unknown."""
        return self._headsigns.get(route_id, {}).get(str(direction_id))

    def route_colors(self, route_id: str) -> RouteColors:
        """Badge colors for a route, defaulting to the brand color.

        A missing text color is computed from the background's luminance.
        """
        route = self._routes.get(route_id)
        color = route.color if route and route.color else DEFAULT_ROUTE_COLOR
        text_color = route.text_color if route and route.text_color else contrast_color(color)
        return RouteColors(color=color, text_color=text_color)


def _read_json(path: Path) -> object:
    if not path.exists():
        raise ReferenceDataUnavailable(f"{path} not found - run the GTFS processing job first")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ReferenceDataUnavailable(f"Could not read {path}: {e}") from e


# Module-level store (lazy-initialized)
_store: ReferenceDataStore | None = None


def get_reference_store() -> ReferenceDataStore:
    """Get the process-wide reference store, loading it on first use.

    Raises:
        ReferenceDataUnavailable: If the tables cannot be loaded.
    """
    global _store
    if _store is None:
        _store = ReferenceDataStore.load(get_transit_config().reference_data_dir)
    return _store


def set_reference_store(store: ReferenceDataStore | None) -> None:
    """Replace the process-wide store. Useful for testing."""
    global _store
    _store = store
