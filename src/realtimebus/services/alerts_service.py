"""Service alerts from the GTFS-RT alerts feed.

Upstream failures are caught and logged; responses carry api_available=False
when no data (fresh or cached) exists.
"""

import logging

from realtimebus.errors import UpstreamError
from realtimebus.models.alerts import Alert, Translation
from realtimebus.models.responses import (
    GetServiceAlertsResponse,
    ServiceAlert,
)
from realtimebus.services import realtime_service

logger = logging.getLogger(__name__)

PREFERRED_LANGUAGE = "en"


def _extract_text(translations: list[Translation]) -> str | None:
    """English text if present, else the first translation."""
    if not translations:
        return None
    for translation in translations:
        if translation.language == PREFERRED_LANGUAGE:
            return translation.text
    return translations[0].text


def _alert_to_service_alert(alert: Alert) -> ServiceAlert:
    """Convert a feed Alert to the ServiceAlert response model."""
    route_ids = list(dict.fromkeys(e.route_id for e in alert.informed_entities if e.route_id))
    stop_ids = list(dict.fromkeys(e.stop_id for e in alert.informed_entities if e.stop_id))

    # Earliest start / latest end across periods; open-ended periods win
    starts = [p.start for p in alert.active_periods]
    ends = [p.end for p in alert.active_periods]
    active_start = None if not starts or None in starts else min(starts)
    active_end = None if not ends or None in ends else max(ends)

    return ServiceAlert(
        id=alert.id,
        header=_extract_text(alert.header_text),
        description=_extract_text(alert.description_text),
        cause=alert.cause,
        effect=alert.effect,
        route_ids=route_ids,
        stop_ids=stop_ids,
        active_start=active_start,
        active_end=active_end,
    )


def is_active(alert: ServiceAlert, now: int) -> bool:
    """Whether an alert's active window contains `now` (open ends always match)."""
    if alert.active_start is not None and now < alert.active_start:
        return False
    if alert.active_end is not None and now > alert.active_end:
        return False
    return True


async def get_service_alerts(
    route_ids: list[str] | None = None,
    stop_ids: list[str] | None = None,
    now: int | None = None,
    limit: int = 50,
) -> GetServiceAlertsResponse:
    """Get service alerts, optionally only those relevant to routes or stops.

    Args:
        route_ids: Keep alerts naming any of these routes.
        stop_ids: Keep alerts naming any of these stops.
        now: If given, keep only alerts active at this unix timestamp.
        limit: Maximum number of alerts to return.

    Returns:
        GetServiceAlertsResponse with filtered alerts. When both route_ids and
        stop_ids are given, an alert matching either is kept.
    """
    try:
        result = await realtime_service.get_alerts()
    except UpstreamError as e:
        logger.warning(f"Failed to fetch alerts: {e}")
        return GetServiceAlertsResponse(
            alerts=[],
            count=0,
            total_count=0,
            timestamp=None,
            api_available=False,
        )

    feed = result.payload
    all_alerts = [_alert_to_service_alert(alert) for alert in feed.alerts]
    filtered = all_alerts

    if route_ids or stop_ids:
        wanted_routes = set(route_ids or [])
        wanted_stops = set(stop_ids or [])
        filtered = [
            a
            for a in filtered
            if wanted_routes.intersection(a.route_ids) or wanted_stops.intersection(a.stop_ids)
        ]

    if now is not None:
        filtered = [a for a in filtered if is_active(a, now)]

    limited = filtered[:limit]

    return GetServiceAlertsResponse(
        alerts=limited,
        count=len(limited),
        total_count=len(all_alerts),
        timestamp=feed.header.timestamp,
        stale=result.stale,
        api_available=True,
    )
