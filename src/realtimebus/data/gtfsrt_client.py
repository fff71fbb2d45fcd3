from datetime import UTC, datetime

import httpx
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from realtimebus.data.config import TransitConfig
from realtimebus.errors import UpstreamError
from realtimebus.models.alerts import ActivePeriod, Alert, InformedEntity, Translation
from realtimebus.models.realtime import (
    FeedHeader,
    GTFSRTFeed,
    Position,
    StopTimeEvent,
    StopTimeUpdate,
    TripDescriptor,
    TripUpdate,
    VehicleDescriptor,
    VehiclePosition,
)

TRIP_UPDATES_PATH = "/tripUpdates"
VEHICLE_POSITIONS_PATH = "/vehiclePositions"
ALERTS_PATH = "/alerts"


class GTFSRTClient:
    """Async HTTP client for fetching GTFS-RT feeds.

    Usage:
        async with GTFSRTClient(config) as client:
            feed = await client.fetch_trip_updates()
    """

    def __init__(self, config: TransitConfig):
        """Initialize the client.

        Args:
            config: Transit configuration with API key, base URL and timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GTFSRTClient":
        """Enter async context - create HTTP client."""
        headers = {}
        if self._config.api_key:
            headers["x-api-key"] = self._config.api_key
        self._client = httpx.AsyncClient(
            headers=headers, timeout=self._config.request_timeout_seconds
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_feed(self, feed_path: str) -> GTFSRTFeed:
        """Fetch and decode one GTFS-RT feed.

        Args:
            feed_path: Path appended to the configured base URL (e.g. "/tripUpdates").

        Returns:
            GTFSRTFeed with every trip update, vehicle position and alert in the message.

        Raises:
            RuntimeError: If client not initialized.
            UpstreamError: On non-2xx status, transport error, timeout or decode failure.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        url = f"{self._config.gtfsrt_base_url}{feed_path}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamError(
                f"GTFS-RT returned {status} for {feed_path}", status=status, feed_path=feed_path
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"GTFS-RT request for {feed_path} failed: {e!r}", feed_path=feed_path
            ) from e

        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(response.content)
        except DecodeError as e:
            raise UpstreamError(
                f"Could not decode GTFS-RT feed {feed_path}",
                status=response.status_code,
                feed_path=feed_path,
            ) from e

        return self._parse_feed(feed)

    async def fetch_trip_updates(self) -> GTFSRTFeed:
        """Fetch the trip updates feed."""
        return await self.fetch_feed(TRIP_UPDATES_PATH)

    async def fetch_vehicle_positions(self) -> GTFSRTFeed:
        """Fetch the vehicle positions feed."""
        return await self.fetch_feed(VEHICLE_POSITIONS_PATH)

    async def fetch_alerts(self) -> GTFSRTFeed:
        """Fetch the service alerts feed."""
        return await self.fetch_feed(ALERTS_PATH)

    def _parse_feed(self, feed: gtfs_realtime_pb2.FeedMessage) -> GTFSRTFeed:
        """Parse protobuf feed message into a GTFSRTFeed model."""
        header = FeedHeader(
            gtfs_realtime_version=feed.header.gtfs_realtime_version,
            timestamp=feed.header.timestamp,
        )

        trip_updates: list[TripUpdate] = []
        vehicles: list[VehiclePosition] = []
        alerts: list[Alert] = []
        for entity in feed.entity:
            if entity.HasField("trip_update"):
                trip_updates.append(self._parse_trip_update(entity.trip_update))
            if entity.HasField("vehicle"):
                vehicles.append(self._parse_vehicle_position(entity.vehicle))
            if entity.HasField("alert"):
                alerts.append(self._parse_alert(entity.id, entity.alert))

        return GTFSRTFeed(
            header=header,
            trip_updates=trip_updates,
            vehicles=vehicles,
            alerts=alerts,
            fetched_at=datetime.now(UTC),
        )

    def _parse_trip_update(self, tu: gtfs_realtime_pb2.TripUpdate) -> TripUpdate:
        """Parse a single trip update entity."""
        trip = self._parse_trip_descriptor(tu.trip)

        vehicle = None
        if tu.HasField("vehicle"):
            vehicle = self._parse_vehicle_descriptor(tu.vehicle)

        stop_time_updates: list[StopTimeUpdate] = []
        for stu in tu.stop_time_update:
            stop_time_updates.append(self._parse_stop_time_update(stu))

        return TripUpdate(
            trip=trip,
            vehicle=vehicle,
            stop_time_update=stop_time_updates,
            timestamp=tu.timestamp if tu.timestamp else None,
        )

    def _parse_stop_time_update(
        self, stu: gtfs_realtime_pb2.TripUpdate.StopTimeUpdate
    ) -> StopTimeUpdate:
        """Parse a single stop time update."""
        arrival = None
        if stu.HasField("arrival"):
            arrival = StopTimeEvent(
                delay=stu.arrival.delay if stu.arrival.delay else None,
                time=stu.arrival.time if stu.arrival.time else None,
            )

        departure = None
        if stu.HasField("departure"):
            departure = StopTimeEvent(
                delay=stu.departure.delay if stu.departure.delay else None,
                time=stu.departure.time if stu.departure.time else None,
            )

        schedule_relationship = None
        if stu.HasField("schedule_relationship"):
            schedule_relationship = gtfs_realtime_pb2.TripUpdate.StopTimeUpdate.ScheduleRelationship.Name(
                stu.schedule_relationship
            )

        return StopTimeUpdate(
            stop_sequence=stu.stop_sequence if stu.stop_sequence else None,
            stop_id=stu.stop_id if stu.stop_id else None,
            arrival=arrival,
            departure=departure,
            schedule_relationship=schedule_relationship,
        )

    def _parse_vehicle_position(self, vp: gtfs_realtime_pb2.VehiclePosition) -> VehiclePosition:
        """Parse a single vehicle position entity."""
        trip = None
        if vp.HasField("trip"):
            trip = self._parse_trip_descriptor(vp.trip)

        vehicle = None
        if vp.HasField("vehicle"):
            vehicle = self._parse_vehicle_descriptor(vp.vehicle)

        position = None
        if vp.HasField("position"):
            position = Position(
                latitude=vp.position.latitude,
                longitude=vp.position.longitude,
                bearing=vp.position.bearing if vp.position.bearing else None,
                speed=vp.position.speed if vp.position.speed else None,
            )

        current_status = None
        if vp.HasField("current_status"):
            current_status = gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus.Name(
                vp.current_status
            )

        return VehiclePosition(
            trip=trip,
            vehicle=vehicle,
            position=position,
            current_stop_sequence=vp.current_stop_sequence if vp.current_stop_sequence else None,
            stop_id=vp.stop_id if vp.stop_id else None,
            current_status=current_status,
            timestamp=vp.timestamp if vp.timestamp else None,
        )

    def _parse_alert(self, entity_id: str, alert: gtfs_realtime_pb2.Alert) -> Alert:
        """Parse a single alert entity."""
        active_periods = [
            ActivePeriod(
                start=period.start if period.start else None,
                end=period.end if period.end else None,
            )
            for period in alert.active_period
        ]

        informed_entities = [
            InformedEntity(
                agency_id=ie.agency_id if ie.agency_id else None,
                route_id=ie.route_id if ie.route_id else None,
                stop_id=ie.stop_id if ie.stop_id else None,
            )
            for ie in alert.informed_entity
        ]

        cause = None
        if alert.HasField("cause"):
            cause = gtfs_realtime_pb2.Alert.Cause.Name(alert.cause)

        effect = None
        if alert.HasField("effect"):
            effect = gtfs_realtime_pb2.Alert.Effect.Name(alert.effect)

        return Alert(
            id=entity_id if entity_id else None,
            active_periods=active_periods,
            informed_entities=informed_entities,
            cause=cause,
            effect=effect,
            header_text=self._parse_translated_string(alert.header_text),
            description_text=self._parse_translated_string(alert.description_text),
        )

    def _parse_translated_string(self, ts: gtfs_realtime_pb2.TranslatedString) -> list[Translation]:
        return [
            Translation(text=t.text, language=t.language if t.language else None)
            for t in ts.translation
        ]

    def _parse_vehicle_descriptor(
        self, vd: gtfs_realtime_pb2.VehicleDescriptor
    ) -> VehicleDescriptor:
        return VehicleDescriptor(
            id=vd.id if vd.id else None,
            label=vd.label if vd.label else None,
        )

    def _parse_trip_descriptor(self, td: gtfs_realtime_pb2.TripDescriptor) -> TripDescriptor:
        """Parse a trip descriptor."""
        schedule_relationship = None
        if td.HasField("schedule_relationship"):
            schedule_relationship = gtfs_realtime_pb2.TripDescriptor.ScheduleRelationship.Name(
                td.schedule_relationship
            )

        return TripDescriptor(
            trip_id=td.trip_id if td.trip_id else None,
            route_id=td.route_id if td.route_id else None,
            direction_id=td.direction_id if td.HasField("direction_id") else None,
            start_time=td.start_time if td.start_time else None,
            start_date=td.start_date if td.start_date else None,
            schedule_relationship=schedule_relationship,
        )
