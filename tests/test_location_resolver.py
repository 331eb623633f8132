import httpx
import pytest

from tadamon.config.settings import get_settings
from tadamon.domain.errors import (
    LinkFetchFailed,
    LocationUnavailable,
    NoCoordinatesFound,
    UnknownCity,
    UnresolvableLink,
)
from tadamon.domain.models import GeoPoint
from tadamon.location.resolver import LiveGPS, LocationResolver, ManualCity, MapLink, RawCoordinates


class StubPositioning:
    def __init__(self, point=None, error=None):
        self._point = point
        self._error = error

    async def get_current_position(self):
        if self._error is not None:
            raise self._error
        return self._point


class StubLinks:
    def __init__(self, final_url=None, error=None):
        self._final_url = final_url
        self._error = error
        self.calls = []

    async def resolve_map_link(self, url):
        self.calls.append(url)
        if self._error is not None:
            raise self._error
        return self._final_url


@pytest.mark.asyncio
async def test_live_gps_resolves_with_default_label():
    resolver = LocationResolver(positioning=StubPositioning(GeoPoint(latitude=33.57, longitude=-7.59)))
    loc = await resolver.resolve(LiveGPS())
    assert (loc.latitude, loc.longitude) == (33.57, -7.59)
    assert loc.source == "GPS"
    assert loc.label == "Current Location"


@pytest.mark.asyncio
async def test_live_gps_denied_is_location_unavailable():
    resolver = LocationResolver(positioning=StubPositioning(error=PermissionError("denied")))
    with pytest.raises(LocationUnavailable) as excinfo:
        await resolver.resolve(LiveGPS())
    assert isinstance(excinfo.value.__cause__, PermissionError)


@pytest.mark.asyncio
async def test_live_gps_without_positioning_capability():
    with pytest.raises(LocationUnavailable):
        await LocationResolver().resolve(LiveGPS())


@pytest.mark.asyncio
async def test_manual_city_uses_registry_and_city_name():
    loc = await LocationResolver().resolve(ManualCity("casa"))
    assert loc.source == "MANUAL_CITY"
    assert loc.label == "Casablanca"
    assert (loc.latitude, loc.longitude) == (33.5731, -7.5898)


@pytest.mark.asyncio
async def test_manual_city_unknown():
    with pytest.raises(UnknownCity):
        await LocationResolver().resolve(ManualCity("Atlantis"))


@pytest.mark.asyncio
async def test_map_link_follows_redirect_then_extracts():
    links = StubLinks(final_url="https://www.google.com/maps/place/X/@33.5731,-7.5898,15z/data=!3d1.0!4d2.0")
    resolver = LocationResolver(links=links)
    loc = await resolver.resolve(MapLink("https://maps.app.goo.gl/abc"))
    assert links.calls == ["https://maps.app.goo.gl/abc"]
    assert (loc.latitude, loc.longitude) == (33.5731, -7.5898)
    assert loc.source == "MAP_LINK"
    assert loc.label == "Shared Location"


@pytest.mark.asyncio
async def test_map_link_label_override():
    links = StubLinks(final_url="https://www.google.com/maps?q=33.5731,-7.5898")
    loc = await LocationResolver(links=links).resolve(MapLink("x"), label="Bakery door")
    assert loc.label == "Bakery door"


@pytest.mark.asyncio
async def test_map_link_without_coordinates_is_unresolvable():
    links = StubLinks(final_url="https://www.google.com/maps/search/bakery")
    with pytest.raises(UnresolvableLink):
        await LocationResolver(links=links).resolve(MapLink("https://maps.app.goo.gl/abc"))


@pytest.mark.asyncio
async def test_map_link_network_error_is_link_fetch_failed():
    links = StubLinks(error=httpx.ConnectError("boom"))
    with pytest.raises(LinkFetchFailed):
        await LocationResolver(links=links).resolve(MapLink("https://maps.app.goo.gl/abc"))


@pytest.mark.asyncio
async def test_raw_coordinates():
    loc = await LocationResolver().resolve(RawCoordinates("33.5750, -7.5910"))
    assert loc.source == "RAW_COORDINATES"
    assert loc.label == "Custom Location"
    assert (loc.latitude, loc.longitude) == (33.575, -7.591)


@pytest.mark.asyncio
async def test_raw_coordinates_missing():
    with pytest.raises(NoCoordinatesFound):
        await LocationResolver().resolve(RawCoordinates("behind the souk"))


def test_intent_from_text_routes_links_and_coordinates():
    resolver = LocationResolver(settings=get_settings())
    assert resolver.intent_from_text(" https://maps.app.goo.gl/abc ") == MapLink("https://maps.app.goo.gl/abc")
    assert resolver.intent_from_text("33.57, -7.58") == RawCoordinates("33.57, -7.58")


@pytest.mark.asyncio
async def test_http_link_resolver_follows_redirects():
    from tadamon.services.link_resolver import HttpLinkResolver

    final = "https://www.google.com/maps/place/X/@33.5731,-7.5898,15z"

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "maps.app.goo.gl":
            return httpx.Response(302, headers={"Location": final})
        return httpx.Response(200)

    links = HttpLinkResolver(get_settings(), transport=httpx.MockTransport(handler))
    loc = await LocationResolver(links=links).resolve(MapLink("https://maps.app.goo.gl/abc"))
    assert (loc.latitude, loc.longitude) == (33.5731, -7.5898)


@pytest.mark.asyncio
async def test_http_link_resolver_non_ok_final_response_fails():
    from tadamon.services.link_resolver import HttpLinkResolver

    links = HttpLinkResolver(get_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    with pytest.raises(LinkFetchFailed):
        await LocationResolver(links=links).resolve(MapLink("https://maps.app.goo.gl/missing"))
