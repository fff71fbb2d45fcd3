from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransitConfig(BaseSettings):
    """Configuration for GTFS-RT, SIRI and reference data access.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    api_key: str | None = Field(default=None, alias="MTA_API_KEY")
    gtfsrt_base_url: str = Field(
        default="https://gtfsrt.prod.obanyc.com", alias="MTA_GTFS_RT_BASE_URL"
    )
    gtfsrt_cache_ttl_seconds: float = 15.0
    alerts_cache_ttl_seconds: float = 60.0

    # Bus Time SIRI uses the same developer registration as GTFS-RT
    bustime_api_key: str | None = Field(default=None, alias="BUSTIME_API_KEY")
    siri_base_url: str = "https://bustime.mta.info/api/siri"
    siri_cache_ttl_seconds: float = 30.0
    siri_batch_limit: int = 20
    siri_min_visits_per_line: int = 2

    request_timeout_seconds: float = Field(default=5.0, alias="REALTIMEBUS_REQUEST_TIMEOUT")

    reference_data_dir: Path = Field(default=Path("data/gtfs"), alias="REALTIMEBUS_DATA_DIR")
    nearby_radius_meters: float = 560.0  # about a 7 minute walk

    @property
    def siri_api_key(self) -> str | None:
        """Key sent to the SIRI API, falling back to the GTFS-RT key."""
        return self.bustime_api_key or self.api_key


@lru_cache
def get_transit_config() -> TransitConfig:
    """Get transit configuration (cached singleton).

    Returns:
        TransitConfig with values from .env file or environment variables.
    """
    return TransitConfig()
