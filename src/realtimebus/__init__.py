"""Nearby-stop arrivals from GTFS-Realtime and SIRI stop-monitoring feeds."""

__version__ = "0.1.0"
