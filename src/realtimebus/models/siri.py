"""Pydantic models for SIRI stop-monitoring JSON (version 2).

Only the fields used to build arrivals are modelled; field names follow the
PascalCase keys of the Bus Time API.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class _SiriModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Distances(_SiriModel):
    stops_from_call: int | None = Field(default=None, alias="StopsFromCall")


class CallExtensions(_SiriModel):
    distances: Distances | None = Field(default=None, alias="Distances")


class MonitoredCall(_SiriModel):
    """Predicted (expected) and scheduled (aimed) times at the monitored stop."""

    expected_arrival_time: datetime | None = Field(default=None, alias="ExpectedArrivalTime")
    expected_departure_time: datetime | None = Field(default=None, alias="ExpectedDepartureTime")
    aimed_arrival_time: datetime | None = Field(default=None, alias="AimedArrivalTime")
    aimed_departure_time: datetime | None = Field(default=None, alias="AimedDepartureTime")
    number_of_stops_away: int | None = Field(default=None, alias="NumberOfStopsAway")
    extensions: CallExtensions | None = Field(default=None, alias="Extensions")


class FramedVehicleJourneyRef(_SiriModel):
    dated_vehicle_journey_ref: str | None = Field(default=None, alias="DatedVehicleJourneyRef")


class MonitoredVehicleJourney(_SiriModel):
    line_ref: str | None = Field(default=None, alias="LineRef")
    direction_ref: str | int | None = Field(default=None, alias="DirectionRef")
    vehicle_ref: str | None = Field(default=None, alias="VehicleRef")
    # a bare string or a one-element list depending on the API version
    destination_name: str | list[str] | None = Field(default=None, alias="DestinationName")
    framed_vehicle_journey_ref: FramedVehicleJourneyRef | None = Field(
        default=None, alias="FramedVehicleJourneyRef"
    )
    monitored_call: MonitoredCall | None = Field(default=None, alias="MonitoredCall")


class MonitoredStopVisit(_SiriModel):
    monitored_vehicle_journey: MonitoredVehicleJourney | None = Field(
        default=None, alias="MonitoredVehicleJourney"
    )


class StopMonitoringDelivery(_SiriModel):
    monitored_stop_visit: list[MonitoredStopVisit] = Field(
        default_factory=list, alias="MonitoredStopVisit"
    )

    @field_validator("monitored_stop_visit", mode="before")
    @classmethod
    def drop_malformed_visits(cls, value: Any) -> Any:
        """Validate visits one at a time so a bad record only loses itself."""
        if not isinstance(value, list):
            return value

        visits = []
        for raw in value:
            try:
                visits.append(MonitoredStopVisit.model_validate(raw))
            except ValidationError as e:
                logger.debug(f"Dropped malformed SIRI visit ({e.error_count()} errors)")
        return visits


class ServiceDelivery(_SiriModel):
    stop_monitoring_delivery: list[StopMonitoringDelivery] = Field(
        default_factory=list, alias="StopMonitoringDelivery"
    )


class SiriBody(_SiriModel):
    service_delivery: ServiceDelivery | None = Field(default=None, alias="ServiceDelivery")


class SiriResponse(_SiriModel):
    """Top-level response from the stop-monitoring endpoint."""

    siri: SiriBody | None = Field(default=None, alias="Siri")

    @property
    def visits(self) -> list[MonitoredStopVisit]:
        """Every monitored stop visit across all deliveries."""
        if self.siri is None or self.siri.service_delivery is None:
            return []
        return [
            visit
            for delivery in self.siri.service_delivery.stop_monitoring_delivery
            for visit in delivery.monitored_stop_visit
        ]
