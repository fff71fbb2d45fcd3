"""Pydantic models for GTFS-RT data.

These models represent the subset of GTFS-RT fields we actually use.
The GTFS-RT format has many more fields; only the ones read downstream are modelled.
"""

from datetime import datetime

from pydantic import BaseModel

from realtimebus.models.alerts import Alert


class StopTimeEvent(BaseModel):
    """Predicted arrival or departure time at a stop."""

    delay: int | None = None  # seconds late (positive) or early (negative)
    time: int | None = None  # predicted unix timestamp


class StopTimeUpdate(BaseModel):
    """Update for a single stop in a trip."""

    stop_sequence: int | None = None
    stop_id: str | None = None
    arrival: StopTimeEvent | None = None
    departure: StopTimeEvent | None = None
    schedule_relationship: str | None = None  # SCHEDULED, SKIPPED, NO_DATA


class TripDescriptor(BaseModel):
    """Identifies a trip for real-time updates."""

    trip_id: str | None = None
    route_id: str | None = None
    direction_id: int | None = None
    start_time: str | None = None  # HH:MM:SS
    start_date: str | None = None  # YYYYMMDD
    schedule_relationship: str | None = None


class VehicleDescriptor(BaseModel):
    """Identifies a vehicle."""

    id: str | None = None
    label: str | None = None


class TripUpdate(BaseModel):
    """Real-time update for a single trip."""

    trip: TripDescriptor
    vehicle: VehicleDescriptor | None = None
    stop_time_update: list[StopTimeUpdate] = []
    timestamp: int | None = None


class Position(BaseModel):
    """Geographic position of a vehicle."""

    latitude: float
    longitude: float
    bearing: float | None = None
    speed: float | None = None  # meters/second


class VehiclePosition(BaseModel):
    """Real-time position of a transit vehicle."""

    trip: TripDescriptor | None = None
    vehicle: VehicleDescriptor | None = None
    position: Position | None = None
    current_stop_sequence: int | None = None
    stop_id: str | None = None
    current_status: str | None = None  # INCOMING_AT, STOPPED_AT, IN_TRANSIT_TO
    timestamp: int | None = None


class FeedHeader(BaseModel):
    """Header information from GTFS-RT feed."""

    gtfs_realtime_version: str
    timestamp: int


class GTFSRTFeed(BaseModel):
    """A decoded GTFS-RT feed message, tagged with the time it was fetched.

    One feed endpoint usually carries one entity kind, but the decoder keeps
    whatever the message contains.
    """

    header: FeedHeader
    trip_updates: list[TripUpdate] = []
    vehicles: list[VehiclePosition] = []
    alerts: list[Alert] = []
    fetched_at: datetime
