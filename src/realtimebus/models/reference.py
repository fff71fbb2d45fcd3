"""Pydantic models for the static reference tables produced by the GTFS ETL job."""

from pydantic import BaseModel, ConfigDict, Field


class Stop(BaseModel):
    """A stop from stops.json."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    stop_id: str = Field(alias="stopId")
    name: str
    lat: float
    lon: float
    routes: list[str] = []  # routes serving the stop; empty stops are not transfer points


class Route(BaseModel):
    """A route from routes.json."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    route_id: str = Field(alias="routeId")
    short_name: str | None = Field(default=None, alias="routeShortName")
    long_name: str | None = Field(default=None, alias="routeLongName")
    color: str | None = Field(default=None, alias="routeColor")  # hex, no leading '#'
    text_color: str | None = Field(default=None, alias="routeTextColor")


class RouteColors(BaseModel):
    """Display colors for a route badge."""

    color: str
    text_color: str
