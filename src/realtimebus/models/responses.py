from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from realtimebus.models.realtime import VehiclePosition
from realtimebus.models.reference import RouteColors, Stop


class ArrivalSource(str, Enum):
    """Which upstream feed produced an arrival. Sources are never merged."""

    GTFS_RT = "gtfs_rt"
    SIRI = "siri"


class ArrivalInfo(BaseModel):
    """One vehicle's arrival at one stop, normalized from either upstream shape.

    At least one of arrival_time/departure_time is set; records lacking both
    are dropped during normalization.
    """

    model_config = ConfigDict(frozen=True)

    trip_id: str | None = None
    route_id: str | None = None
    headsign: str | None = None
    direction_id: int | None = None
    vehicle_id: str | None = None
    stop_sequence: int | None = None
    arrival_time: int | None = Field(default=None, description="Unix timestamp (seconds)")
    departure_time: int | None = Field(default=None, description="Unix timestamp (seconds)")
    stops_away: int | None = Field(
        default=None, ge=0, description="Stops between the vehicle and this stop, None if unknown"
    )
    schedule_relationship: str | None = None
    is_scheduled: bool = Field(
        default=False, description="True when only a scheduled time exists, no live prediction"
    )
    source: ArrivalSource

    @property
    def effective_time(self) -> int | None:
        """Time used for ordering: arrival, falling back to departure."""
        return self.arrival_time if self.arrival_time is not None else self.departure_time


class ArrivalClassification(BaseModel):
    label: str = Field(description="'departed', 'arriving', 'leave now' or 'leave in N min'")
    catchable: bool = Field(description="Whether the rider can walk to the stop in time")


class ClassifiedArrival(BaseModel):
    """An arrival annotated with its time-relative state at query time."""

    arrival: ArrivalInfo
    effective_time: int
    label: str = Field(description="Leave-in label")
    arrival_label: str = Field(description="Bus-arrives-in label ('departed', 'arriving', 'N min')")
    catchable: bool
    departed: bool
    route_colors: RouteColors | None = None


class DirectionGroup(BaseModel):
    key: str = Field(description="Headsign, or the Unknown bucket key")
    headsign: str | None = None
    arrivals: list[ClassifiedArrival]


class StopArrivals(BaseModel):
    """Display-ready arrivals for one stop, grouped by direction."""

    stop_id: str
    stop: Stop | None = None
    distance_meters: float | None = None
    walk_time_sec: float | None = None
    directions: list[DirectionGroup] = []
    has_upcoming: bool = Field(
        default=False, description="At least one arrival not long departed"
    )


class GetArrivalsResponse(BaseModel):
    """Normalized arrivals per stop.

    When available is False there is no data at all (fresh or cached) and
    `arrivals` must not be read as "no buses".
    """

    source: ArrivalSource
    arrivals: dict[str, list[ArrivalInfo]] = {}
    available: bool = True
    stale: bool = Field(default=False, description="Served from cache after a failed refresh")
    fetched_at_ms: int | None = None
    failed_stop_ids: list[str] = []
    error: str | None = None
    query_time: int = Field(description="Unix timestamp the response was computed for")


class GetNearbyArrivalsResponse(BaseModel):
    source: ArrivalSource
    stops: list[StopArrivals] = []
    count: int = Field(description="Number of stops returned")
    available: bool = True
    stale: bool = False
    error: str | None = None
    query_time: int


class WalkTimeResponse(BaseModel):
    distance_meters: float
    walk_time_sec: float


class FeedStalenessResponse(BaseModel):
    feed_key: str
    seconds_since_last_fetch: int | None = Field(
        default=None, description="None when the feed has never been fetched"
    )


class ServiceAlert(BaseModel):
    """Service alert with English-first text."""

    id: str | None = None
    header: str | None = None
    description: str | None = None
    cause: str | None = None
    effect: str | None = None
    route_ids: list[str] = []
    stop_ids: list[str] = []
    active_start: int | None = None
    active_end: int | None = None


class GetServiceAlertsResponse(BaseModel):
    alerts: list[ServiceAlert]
    count: int = Field(description="Number of alerts returned after filtering")
    total_count: int = Field(description="Total alerts in the feed before filtering")
    timestamp: int | None = Field(default=None, description="Feed header timestamp")
    stale: bool = False
    api_available: bool = Field(description="Whether the alerts feed could be read")


class GetVehicleResponse(BaseModel):
    trip_id: str
    vehicle: VehiclePosition | None = None
    api_available: bool


class TripTimelineStop(BaseModel):
    """One stop on a trip's live timeline, in feed order."""

    stop_id: str | None = None
    stop_name: str | None = None
    stop_sequence: int | None = None
    arrival_time: int | None = None
    departure_time: int | None = None
    schedule_relationship: str | None = None
    is_past: bool = False
    is_next: bool = Field(default=False, description="First stop still ahead of the bus")
    is_vehicle_here: bool = Field(
        default=False, description="The live vehicle reports this as its current stop"
    )


class GetTripTimelineResponse(BaseModel):
    """A trip's remaining stop-time updates joined with stop names and the live vehicle."""

    trip_id: str
    route_id: str | None = None
    found: bool = Field(default=False, description="Whether the trip is in the trip updates feed")
    stops: list[TripTimelineStop] = []
    current_stop_id: str | None = None
    vehicle: VehiclePosition | None = None
    stale: bool = False
    query_time: int
    api_available: bool


class TransferStop(BaseModel):
    stop: Stop
    distance_meters: float


class GetTransfersResponse(BaseModel):
    """Stops within transfer distance of a stop that are served by routes."""

    stop_id: str
    transfers: list[TransferStop] = []
    count: int = 0
    available: bool = True
    error: str | None = None
