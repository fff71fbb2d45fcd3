"""Tests for nearby-stop search, transfers and stop ranking."""

from unittest.mock import patch

import pytest

from realtimebus.data.reference_store import ReferenceDataStore, set_reference_store
from realtimebus.errors import ReferenceDataUnavailable
from realtimebus.models.reference import Stop
from realtimebus.models.responses import StopArrivals
from realtimebus.services import stop_service
from realtimebus.services.stop_service import (
    find_nearby_stops,
    find_transfers,
    get_transfers,
    haversine_distance,
    rank_stops,
)


@pytest.fixture
def store() -> ReferenceDataStore:
    return ReferenceDataStore(
        stops=[
            Stop(stop_id="far", name="MAIN ST/SANFORD AV", lat=40.7556, lon=-73.8303),
            Stop(stop_id="near", name="MAIN ST/ROOSEVELT AV", lat=40.7596, lon=-73.8303),
            Stop(stop_id="mid", name="MAIN ST/41 AV", lat=40.7575, lon=-73.8303),
            Stop(stop_id="away", name="JAMAICA 165 ST TERM", lat=40.7075, lon=-73.7940),
        ],
        routes=[],
    )


class TestHaversineDistance:
    """Tests for haversine_distance function."""

    def test_same_point(self):
        assert haversine_distance(40.7596, -73.8303, 40.7596, -73.8303) == 0

    def test_one_degree_latitude(self):
        # One degree of latitude is about 111.2 km
        assert haversine_distance(40.0, -73.0, 41.0, -73.0) == pytest.approx(111_195, rel=1e-3)

    def test_symmetric(self):
        d1 = haversine_distance(40.7596, -73.8303, 40.7075, -73.7940)
        d2 = haversine_distance(40.7075, -73.7940, 40.7596, -73.8303)
        assert d1 == pytest.approx(d2)


class TestFindNearbyStops:
    """Tests for find_nearby_stops function."""

    def test_sorted_by_distance_within_radius(self, store: ReferenceDataStore):
        nearby = find_nearby_stops(store, 40.7596, -73.8303, 560)

        assert [stop.stop_id for stop, _ in nearby] == ["near", "mid", "far"]
        distances = [d for _, d in nearby]
        assert distances == sorted(distances)
        assert distances[0] == pytest.approx(0)

    def test_small_radius(self, store: ReferenceDataStore):
        nearby = find_nearby_stops(store, 40.7596, -73.8303, 100)

        assert [stop.stop_id for stop, _ in nearby] == ["near"]

    def test_nothing_nearby(self, store: ReferenceDataStore):
        assert find_nearby_stops(store, 0.0, 0.0, 560) == []


class TestRankStops:
    """Tests for rank_stops function."""

    def _stop(self, stop_id: str, distance: float | None, has_upcoming: bool) -> StopArrivals:
        return StopArrivals(stop_id=stop_id, distance_meters=distance, has_upcoming=has_upcoming)

    def test_upcoming_first_then_distance(self):
        ranked = rank_stops(
            [
                self._stop("a", 100, False),
                self._stop("b", 300, True),
                self._stop("c", 200, True),
                self._stop("d", 50, False),
            ]
        )

        assert [s.stop_id for s in ranked] == ["c", "b", "d", "a"]

    def test_ties_keep_input_order(self):
        ranked = rank_stops(
            [
                self._stop("x", 100, True),
                self._stop("y", 100, True),
                self._stop("z", None, True),
                self._stop("w", None, True),
            ]
        )

        assert [s.stop_id for s in ranked] == ["x", "y", "z", "w"]

    def test_empty(self):
        assert rank_stops([]) == []


def _transfer_store() -> ReferenceDataStore:
    # 0.001 degrees of latitude is about 111m
    return ReferenceDataStore(
        stops=[
            Stop(stop_id="302555", name="MAIN ST/ROOSEVELT AV", lat=40.7596, lon=-73.8303, routes=["Q17"]),
            Stop(stop_id="g", name="MAIN ST/39 AV", lat=40.7622, lon=-73.8303, routes=["Q65"]),
            Stop(stop_id="a", name="ROOSEVELT AV/MAIN ST", lat=40.7597, lon=-73.8303, routes=["Q27"]),
            Stop(stop_id="b", name="LAYOVER", lat=40.7600, lon=-73.8303, routes=[]),
            Stop(stop_id="c", name="MAIN ST/40 RD", lat=40.7605, lon=-73.8303, routes=["Q44"]),
            Stop(stop_id="d", name="MAIN ST/40 AV", lat=40.7610, lon=-73.8303, routes=["Q20A"]),
            Stop(stop_id="e", name="MAIN ST/39 RD", lat=40.7615, lon=-73.8303, routes=["Q20B"]),
            Stop(stop_id="f", name="MAIN ST/39 AV N", lat=40.7620, lon=-73.8303, routes=["Q28"]),
            Stop(stop_id="h", name="MAIN ST/NORTHERN BL", lat=40.7630, lon=-73.8303, routes=["Q66"]),
        ],
        routes=[],
    )


class TestFindTransfers:
    """Tests for find_transfers function."""

    def test_nearest_served_stops_capped_at_five(self):
        store = _transfer_store()

        transfers = find_transfers(store, store.get_stop("302555"))

        # "b" has no routes, "g" is sixth, "h" is beyond 320m
        assert [stop.stop_id for stop, _ in transfers] == ["a", "c", "d", "e", "f"]
        distances = [d for _, d in transfers]
        assert distances == sorted(distances)
        assert distances[-1] < 320

    def test_excludes_the_stop_itself(self):
        store = _transfer_store()

        transfers = find_transfers(store, store.get_stop("a"), limit=10)

        assert "a" not in [stop.stop_id for stop, _ in transfers]
        assert transfers[0][0].stop_id == "302555"

    def test_isolated_stop_has_no_transfers(self):
        store = _transfer_store()

        assert find_transfers(store, store.get_stop("h"), radius_meters=50) == []


class TestGetTransfers:
    """Tests for the get_transfers lookup."""

    @pytest.fixture(autouse=True)
    def reset_store(self):
        set_reference_store(None)
        yield
        set_reference_store(None)

    def test_returns_transfers(self):
        set_reference_store(_transfer_store())

        response = get_transfers("302555")

        assert response.available is True
        assert response.count == 5
        assert response.transfers[0].stop.stop_id == "a"
        assert response.transfers[0].stop.routes == ["Q27"]
        assert response.transfers[0].distance_meters == pytest.approx(11, abs=1)

    def test_unknown_stop(self):
        set_reference_store(_transfer_store())

        response = get_transfers("nope")

        assert response.available is True
        assert response.count == 0
        assert "nope" in response.error

    def test_unavailable_without_reference_data(self):
        with patch.object(
            stop_service,
            "get_reference_store",
            side_effect=ReferenceDataUnavailable("stops.json not found"),
        ):
            response = get_transfers("302555")

        assert response.available is False
        assert "stops.json" in response.error
