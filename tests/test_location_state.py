import asyncio

import pytest

from tadamon.domain.errors import LocationUnavailable, UnknownCity
from tadamon.domain.models import CanonicalLocation, GeoPoint
from tadamon.location.resolver import LiveGPS, LocationResolver, ManualCity
from tadamon.location.state import LocationState


class GatedPositioning:
    """Holds the GPS fix until the test opens the gate."""

    def __init__(self, point=None, error=None):
        self.gate = asyncio.Event()
        self.started = asyncio.Event()
        self._point = point
        self._error = error

    async def get_current_position(self):
        self.started.set()
        await self.gate.wait()
        if self._error is not None:
            raise self._error
        return self._point


@pytest.mark.asyncio
async def test_select_sets_current_location():
    state = LocationState(LocationResolver())
    loc = await state.select(ManualCity("rabat"))
    assert loc is not None
    assert state.current == loc
    assert state.current.label == "Rabat"


@pytest.mark.asyncio
async def test_late_gps_fix_does_not_override_newer_city_choice():
    gps = GatedPositioning(point=GeoPoint(latitude=35.0, longitude=-5.0))
    state = LocationState(LocationResolver(positioning=gps))

    pending = asyncio.create_task(state.select(LiveGPS()))
    await gps.started.wait()

    city = await state.select(ManualCity("casablanca"))
    gps.gate.set()
    late = await pending

    assert late is None
    assert state.current == city
    assert state.current.source == "MANUAL_CITY"


@pytest.mark.asyncio
async def test_superseded_failure_is_swallowed():
    gps = GatedPositioning(error=PermissionError("denied"))
    state = LocationState(LocationResolver(positioning=gps))

    pending = asyncio.create_task(state.select(LiveGPS()))
    await gps.started.wait()
    await state.select(ManualCity("fes"))
    gps.gate.set()

    assert await pending is None
    assert state.current.label == "Fes"


@pytest.mark.asyncio
async def test_current_failure_propagates_and_keeps_previous_location():
    initial = CanonicalLocation(latitude=1.0, longitude=2.0, label="Home", source="MANUAL_CITY")
    state = LocationState(LocationResolver(), initial=initial)

    with pytest.raises(UnknownCity):
        await state.select(ManualCity("Atlantis"))
    with pytest.raises(LocationUnavailable):
        await state.select(LiveGPS())
    assert state.current == initial


@pytest.mark.asyncio
async def test_set_location_and_clear_supersede_in_flight_requests():
    gps = GatedPositioning(point=GeoPoint(latitude=35.0, longitude=-5.0))
    state = LocationState(LocationResolver(positioning=gps))

    pending = asyncio.create_task(state.select(LiveGPS()))
    await gps.started.wait()
    state.clear()
    gps.gate.set()

    assert await pending is None
    assert state.current is None
    before = state.epoch
    state.set_location(CanonicalLocation(latitude=0.0, longitude=0.0, label="Null Island", source="RAW_COORDINATES"))
    assert state.epoch == before + 1
