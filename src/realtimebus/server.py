import argparse
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from realtimebus.app import mcp
from realtimebus.data.config import get_transit_config
from realtimebus.data.reference_store import ReferenceDataStore, set_reference_store
from realtimebus.errors import ReferenceDataUnavailable

# Register tools
from realtimebus.tools import alerts_tools, arrivals_tools, stop_tools, trip_tools  # noqa: F401

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    api_key_set: bool


@mcp.tool()
def health() -> HealthResponse:
    """Check if the realtime bus MCP server is running and healthy.

    Returns the server status, version, current timestamp, and whether an
    upstream API key is configured.
    """
    from realtimebus import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        api_key_set=get_transit_config().api_key is not None,
    )


def load_reference_data(data_dir: Path | None = None) -> ReferenceDataStore:
    """Load stops/routes/headsigns once at startup.

    Raises:
        ReferenceDataUnavailable: If the tables cannot be loaded.
    """
    if data_dir is None:
        data_dir = get_transit_config().reference_data_dir
    store = ReferenceDataStore.load(data_dir)
    set_reference_store(store)
    return store


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="realtimebus",
        description="Realtime Bus MCP Server",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory with stops.json, routes.json and route-headsigns.json "
        "(default: data/gtfs or REALTIMEBUS_DATA_DIR env var)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Configure logging (stderr, stdout carries the MCP protocol)
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        load_reference_data(args.data_dir)
    except ReferenceDataUnavailable as e:
        logger.error(f"Cannot start without reference data: {e}")
        sys.exit(1)

    mcp.run()


if __name__ == "__main__":
    main()
