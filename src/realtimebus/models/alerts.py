"""Pydantic models for GTFS-RT service alerts."""

from pydantic import BaseModel, ConfigDict


class Translation(BaseModel):
    """A text string with its (optional) language code."""

    model_config = ConfigDict(extra="ignore")

    text: str
    language: str | None = None


class ActivePeriod(BaseModel):
    """Time period when an alert is active. Open-ended when start or end is missing."""

    model_config = ConfigDict(extra="ignore")

    start: int | None = None
    end: int | None = None


class InformedEntity(BaseModel):
    """Entity affected by an alert (agency, route or stop).

    Each field is optional as entities can specify any combination.
    """

    model_config = ConfigDict(extra="ignore")

    agency_id: str | None = None
    route_id: str | None = None
    stop_id: str | None = None


class Alert(BaseModel):
    """A single service alert from the GTFS-RT alerts feed."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    active_periods: list[ActivePeriod] = []
    informed_entities: list[InformedEntity] = []
    cause: str | None = None
    effect: str | None = None
    header_text: list[Translation] = []
    description_text: list[Translation] = []
