"""
Google Places (legacy web service) provider: nearby search, place details, photo URLs.

Nearby search pages are linked by next_page_token. Google rejects a token that is used
too early, so a fixed delay runs before every continuation request; pages of one query are
therefore strictly sequential. Details and photo URLs go through CacheStore.

The API key is sent as a query parameter and must never reach a client: photo references
are resolved to the redirect target (a keyless googleusercontent URL) instead of handing
out the photo endpoint itself.
"""
import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from app.core.constants import CACHE_KEY_DETAILS, CACHE_KEY_PHOTOS
from app.core.errors import ProviderBadResponse, ProviderUnavailable
from app.services.cache.store import CacheStore
from app.services.providers.types import ExternalPlace, parse_place, parse_places

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
NEARBY_SEARCH_URL = f"{PLACES_BASE_URL}/nearbysearch/json"
DETAILS_URL = f"{PLACES_BASE_URL}/details/json"
PHOTO_URL = f"{PLACES_BASE_URL}/photo"

DETAILS_FIELDS = "place_id,name,formatted_address,geometry,business_status,types,rating,user_ratings_total,price_level"

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"


def _check_status(data: dict[str, Any], *, allow_zero_results: bool) -> None:
    status = data.get("status")
    if status == STATUS_OK or (allow_zero_results and status == STATUS_ZERO_RESULTS):
        return
    raise ProviderBadResponse(
        f"Google Places API error: {status} - {data.get('error_message') or 'Unknown error'}"
    )


class GooglePlacesProvider:
    provider_id = "google"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: CacheStore,
        *,
        api_key: str,
        page_delay_seconds: float = 2.0,
        search_type: str = "night_club|bar|restaurant",
        photo_max_width: int = 800,
        max_photos: int = 3,
        details_ttl_seconds: int = 24 * 60 * 60,
        photos_ttl_seconds: int = 24 * 60 * 60,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._cache = cache
        self._api_key = api_key
        self._page_delay_seconds = page_delay_seconds
        self._search_type = search_type
        self._photo_max_width = photo_max_width
        self._max_photos = max_photos
        self._details_ttl_seconds = details_ttl_seconds
        self._photos_ttl_seconds = photos_ttl_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, client: httpx.AsyncClient, cache: CacheStore) -> "GooglePlacesProvider":
        return cls(
            client,
            cache,
            api_key=settings.google_places_api_key,
            page_delay_seconds=settings.places_page_delay_seconds,
            search_type=settings.places_search_type,
            photo_max_width=settings.places_photo_max_width,
            max_photos=settings.places_max_photos,
            details_ttl_seconds=settings.details_cache_ttl_seconds,
            photos_ttl_seconds=settings.photos_cache_ttl_seconds,
        )

    async def _get(self, url: str, params: dict[str, str], *, follow_redirects: bool = True) -> httpx.Response:
        if not self._api_key:
            raise ProviderUnavailable("Google Places API key not configured")
        try:
            return await self._client.get(
                url,
                params={**params, "key": self._api_key},
                follow_redirects=follow_redirects,
            )
        except httpx.HTTPError as e:
            # Exception text can carry the request URL (and so the key); log the type only
            raise ProviderUnavailable(f"Google Places request failed: {type(e).__name__}") from e

    async def _get_json(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        resp = await self._get(url, params)
        if not resp.is_success:
            raise ProviderUnavailable(f"Google Places API error: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderBadResponse("Google Places API returned non-JSON body") from e
        if not isinstance(data, dict):
            raise ProviderBadResponse("Google Places API returned unexpected JSON shape")
        return data

    async def iter_nearby_pages(
        self,
        lat: float,
        lon: float,
        query: str,
        radius_meters: int,
    ) -> AsyncIterator[list[ExternalPlace]]:
        params = {
            "location": f"{lat},{lon}",
            "radius": str(int(radius_meters)),
            "keyword": query,
            "type": self._search_type,
        }
        page_num = 1
        while True:
            data = await self._get_json(NEARBY_SEARCH_URL, params)
            _check_status(data, allow_zero_results=True)
            places = parse_places(data.get("results"))
            logger.debug("Places nearby page %s: %s results", page_num, len(places))
            yield places
            token = data.get("next_page_token")
            if not isinstance(token, str) or not token:
                return
            await self._sleep(self._page_delay_seconds)
            params = {"pagetoken": token}
            page_num += 1

    async def search_nearby(
        self,
        lat: float,
        lon: float,
        query: str,
        radius_meters: int,
    ) -> list[ExternalPlace]:
        by_id: dict[str, ExternalPlace] = {}
        async for page in self.iter_nearby_pages(lat, lon, query, radius_meters):
            for place in page:
                by_id.setdefault(place.place_id, place)
        return list(by_id.values())

    async def get_details(self, place_id: str) -> ExternalPlace:
        key = CACHE_KEY_DETAILS.format(place_id=place_id)
        cached = await self._cache.get_json(key)
        if isinstance(cached, dict):
            try:
                return ExternalPlace.from_dict(cached)
            except TypeError:
                logger.warning("Discarding malformed details cache entry for %s", place_id)

        data = await self._get_json(DETAILS_URL, {"place_id": place_id, "fields": DETAILS_FIELDS})
        _check_status(data, allow_zero_results=False)
        place = parse_place(data.get("result"))
        if place is None:
            raise ProviderBadResponse(f"Google Places details for {place_id} missing required fields")
        await self._cache.set_json(key, place.to_dict(), self._details_ttl_seconds)
        return place

    async def get_photo_urls(self, place_id: str) -> list[str]:
        key = CACHE_KEY_PHOTOS.format(place_id=place_id)
        cached = await self._cache.get_json(key)
        if isinstance(cached, list):
            return [str(u) for u in cached]

        data = await self._get_json(DETAILS_URL, {"place_id": place_id, "fields": "photos"})
        _check_status(data, allow_zero_results=False)
        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise ProviderBadResponse(f"Google Places photos for {place_id}: result is not an object")
        photos = result.get("photos") or []
        if not isinstance(photos, list):
            raise ProviderBadResponse(f"Google Places photos for {place_id}: photos is not a list")
        refs = [
            p["photo_reference"]
            for p in photos
            if isinstance(p, dict) and isinstance(p.get("photo_reference"), str) and p["photo_reference"]
        ][: self._max_photos]
        urls: list[str] = []
        for ref in refs:
            url = await self._resolve_photo(ref)
            if url:
                urls.append(url)
        # Single write once the list is complete (a cancelled call writes nothing)
        await self._cache.set_json(key, urls, self._photos_ttl_seconds)
        return urls

    async def _resolve_photo(self, photo_reference: str) -> str | None:
        """Photo endpoint answers with a redirect to the image; return that keyless location."""
        resp = await self._get(
            PHOTO_URL,
            {"maxwidth": str(self._photo_max_width), "photo_reference": photo_reference},
            follow_redirects=False,
        )
        location = resp.headers.get("location")
        if resp.is_redirect and location:
            return location
        logger.debug("Places photo reference did not redirect (HTTP %s); skipped", resp.status_code)
        return None
