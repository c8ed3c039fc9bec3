import asyncio

import httpx
import pytest

from app.core.errors import ProviderBadResponse, ProviderUnavailable
from app.db.session import SessionLocal
from app.services.cache import CacheBackendSelection, CacheStore, LocalBackend
from app.services.discovery import discover
from app.services.providers import GooglePlacesProvider
from app.services.providers.google_places import DETAILS_URL, NEARBY_SEARCH_URL, PHOTO_URL
from app.services.providers.types import parse_place

from conftest import FakeSharedBackend


def place(pid, name="Club", lat=52.5, lng=13.4):
    return {
        "place_id": pid,
        "name": name,
        "vicinity": "Somewhere 1",
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "types": ["night_club", "point_of_interest"],
    }


class Recorder:
    """httpx.MockTransport handler: answers by URL path and records every request."""

    def __init__(self, responder):
        self.responder = responder
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.responder(request)

    def paths(self):
        return [r.url.path for r in self.requests]


def make_provider(responder, *, clock=None, shared=False, api_key="secret-key", max_photos=3):
    recorder = Recorder(responder)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    local = LocalBackend(clock) if clock else LocalBackend()
    backend = FakeSharedBackend(clock) if shared else None
    cache = CacheStore(CacheBackendSelection(local, backend))
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    provider = GooglePlacesProvider(
        client,
        cache,
        api_key=api_key,
        page_delay_seconds=2.0,
        max_photos=max_photos,
        sleep=fake_sleep,
    )
    return provider, recorder, sleeps


def test_nearby_search_follows_page_tokens_with_delay():
    pages = {
        None: {"status": "OK", "results": [place("a"), place("b")], "next_page_token": "t1"},
        "t1": {"status": "OK", "results": [place("b"), place("c")], "next_page_token": "t2"},
        "t2": {"status": "OK", "results": [place("d")]},
    }

    def responder(request):
        return httpx.Response(200, json=pages[request.url.params.get("pagetoken")])

    provider, recorder, sleeps = make_provider(responder)
    places = asyncio.run(provider.search_nearby(52.5, 13.4, "night clubs", 1000))

    assert [p.place_id for p in places] == ["a", "b", "c", "d"]
    assert sleeps == [2.0, 2.0]
    first, second = recorder.requests[0], recorder.requests[1]
    assert first.url.params["location"] == "52.5,13.4"
    assert first.url.params["radius"] == "1000"
    assert first.url.params["keyword"] == "night clubs"
    assert second.url.params["pagetoken"] == "t1"
    assert "location" not in second.url.params
    assert all(r.url.params["key"] == "secret-key" for r in recorder.requests)


def test_zero_results_is_an_empty_page():
    provider, _, sleeps = make_provider(lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}))
    assert asyncio.run(provider.search_nearby(1.0, 2.0, "bar", 500)) == []
    assert sleeps == []


def test_error_status_raises_bad_response():
    provider, _, _ = make_provider(
        lambda r: httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})
    )
    with pytest.raises(ProviderBadResponse, match="REQUEST_DENIED"):
        asyncio.run(provider.search_nearby(1.0, 2.0, "bar", 500))


def test_http_error_and_transport_failure_raise_unavailable():
    provider, _, _ = make_provider(lambda r: httpx.Response(503, text="down"))
    with pytest.raises(ProviderUnavailable):
        asyncio.run(provider.search_nearby(1.0, 2.0, "bar", 500))

    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider, _, _ = make_provider(boom)
    with pytest.raises(ProviderUnavailable) as exc_info:
        asyncio.run(provider.get_details("p1"))
    assert "secret-key" not in str(exc_info.value)


def test_missing_api_key_is_unavailable_without_a_request():
    provider, recorder, _ = make_provider(lambda r: httpx.Response(200, json={}), api_key="")
    with pytest.raises(ProviderUnavailable):
        asyncio.run(provider.get_details("p1"))
    assert recorder.requests == []


def test_details_are_cached(clock):
    def responder(request):
        assert request.url.path.endswith("/details/json")
        return httpx.Response(200, json={"status": "OK", "result": {**place("p1", "The Rex"), "formatted_address": "1 Main St"}})

    provider, recorder, _ = make_provider(responder, clock=clock, shared=True)

    async def run():
        return await provider.get_details("p1"), await provider.get_details("p1")

    first, second = asyncio.run(run())
    assert first.name == second.name == "The Rex"
    assert second.address == "1 Main St"
    assert len(recorder.requests) == 1


def test_photo_urls_resolve_redirects_and_are_cached(clock):
    def responder(request):
        if str(request.url).startswith(DETAILS_URL):
            photos = [{"photo_reference": f"ref{i}"} for i in range(5)]
            return httpx.Response(200, json={"status": "OK", "result": {"photos": photos}})
        if str(request.url).startswith(PHOTO_URL):
            ref = request.url.params["photo_reference"]
            return httpx.Response(302, headers={"location": f"https://lh3.googleusercontent.com/{ref}"})
        raise AssertionError(f"unexpected request {request.url}")

    provider, recorder, _ = make_provider(responder, clock=clock, shared=True, max_photos=3)

    async def run():
        return await provider.get_photo_urls("p1"), await provider.get_photo_urls("p1")

    first, second = asyncio.run(run())
    assert first == [
        "https://lh3.googleusercontent.com/ref0",
        "https://lh3.googleusercontent.com/ref1",
        "https://lh3.googleusercontent.com/ref2",
    ]
    assert second == first
    assert all("secret-key" not in url for url in first)
    assert len(recorder.requests) == 4  # 1 details + 3 photo redirects, second call from cache


def test_place_without_photos_gives_empty_list():
    provider, recorder, _ = make_provider(lambda r: httpx.Response(200, json={"status": "OK", "result": {}}))
    assert asyncio.run(provider.get_photo_urls("p1")) == []
    assert len(recorder.requests) == 1
    assert not str(recorder.requests[0].url).startswith(NEARBY_SEARCH_URL)


@pytest.mark.parametrize(
    "row",
    [
        {"place_id": 123, "name": "n", "geometry": {"location": {"lat": 1, "lng": 2}}},
        {"place_id": "x", "name": ["n"], "geometry": {"location": {"lat": 1, "lng": 2}}},
        {"place_id": "x", "name": "n", "geometry": "oops"},
        {"place_id": "x", "name": "n", "geometry": {"location": [1, 2]}},
        {"place_id": "x", "name": "n", "geometry": {"location": {"lat": "north", "lng": 2}}},
        "not-a-place",
    ],
)
def test_malformed_rows_are_skipped(row):
    assert parse_place(row) is None


def test_malformed_optional_fields_are_dropped():
    row = {
        **place("a"),
        "vicinity": 42,
        "types": "bar",
        "user_ratings_total": "many",
        "price_level": float("inf"),
        "business_status": ["OPERATIONAL"],
    }
    parsed = parse_place(row)
    assert parsed.place_id == "a"
    assert parsed.address == ""
    assert parsed.types == []
    assert parsed.user_ratings_total is None
    assert parsed.price_level is None
    assert parsed.business_status is None


def test_discover_skips_malformed_rows_instead_of_failing(db):
    results = [
        {"place_id": "x", "name": "n", "geometry": "oops"},
        {"place_id": 123, "name": "n", "geometry": {"location": {"lat": 1, "lng": 2}}},
        place("good", "Good Club"),
    ]

    def responder(request):
        if str(request.url).startswith(NEARBY_SEARCH_URL):
            return httpx.Response(200, json={"status": "OK", "results": results})
        return httpx.Response(200, json={"status": "OK", "result": {}})

    provider, _, _ = make_provider(responder)
    views = asyncio.run(
        discover(
            session_factory=SessionLocal,
            provider=provider,
            lat=52.5,
            lon=13.4,
            query="night clubs",
            radius_meters=1000,
        )
    )
    assert [v.slug for v in views] == ["external_good"]


@pytest.mark.parametrize("result", [["photo"], {"photos": "ref0"}])
def test_malformed_photo_payload_is_bad_response(result):
    provider, _, _ = make_provider(lambda r: httpx.Response(200, json={"status": "OK", "result": result}))
    with pytest.raises(ProviderBadResponse):
        asyncio.run(provider.get_photo_urls("p1"))


def test_discover_degrades_when_photo_payload_is_malformed(db):
    def responder(request):
        if str(request.url).startswith(NEARBY_SEARCH_URL):
            return httpx.Response(200, json={"status": "OK", "results": [place("a", "A")]})
        return httpx.Response(200, json={"status": "OK", "result": ["photo"]})

    provider, _, _ = make_provider(responder)
    views = asyncio.run(
        discover(
            session_factory=SessionLocal,
            provider=provider,
            lat=52.5,
            lon=13.4,
            query="night clubs",
            radius_meters=1000,
        )
    )
    assert [(v.slug, v.photo_urls) for v in views] == [("external_a", [])]
