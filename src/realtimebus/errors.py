"""Exceptions raised by the feed clients and reference data store."""


class TransitError(Exception):
    """Base class for realtimebus errors."""


class UpstreamError(TransitError):
    """An upstream feed could not be fetched or decoded.

    Attributes:
        status: HTTP status of the response, None for transport errors and timeouts.
        feed_path: GTFS-RT feed path, when the failing call was a GTFS-RT fetch.
        stop_id: Stop ID, when the failing call was a SIRI stop-monitoring fetch.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        feed_path: str | None = None,
        stop_id: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.feed_path = feed_path
        self.stop_id = stop_id


class ReferenceDataUnavailable(TransitError):
    """Static stops/routes tables are missing or could not be parsed."""
