"""Tests for the stop MCP tools."""

import pytest

from realtimebus.data.reference_store import ReferenceDataStore, set_reference_store
from realtimebus.models.reference import Stop
from realtimebus.tools.stop_tools import get_transfers


@pytest.fixture(autouse=True)
def store():
    set_reference_store(
        ReferenceDataStore(
            stops=[
                Stop(stop_id="302555", name="MAIN ST/ROOSEVELT AV", lat=40.7596, lon=-73.8303, routes=["Q17"]),
                Stop(stop_id="302556", name="ROOSEVELT AV/MAIN ST", lat=40.7599, lon=-73.8303, routes=["Q27"]),
            ],
            routes=[],
        )
    )
    yield
    set_reference_store(None)


def test_get_transfers():
    response = get_transfers("302555")

    assert response.stop_id == "302555"
    assert response.count == 1
    assert response.transfers[0].stop.name == "ROOSEVELT AV/MAIN ST"
    assert response.transfers[0].distance_meters == pytest.approx(33, abs=1)
