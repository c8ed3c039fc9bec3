"""
Discovery: catalog venues fused with nearby places from the provider.

1. Catalog read (all venues + visible reports) and external search run concurrently, each
   under its own timeout. The catalog read is blocking SQLAlchemy, so it runs in a thread
   with its own session.
2. A failed or timed-out external search degrades to "no external results"; a partial list
   is always preferred to an error. Catalog failures propagate.
3. External results whose place id is already in the catalog are dropped (catalog wins).
4. Surviving external places get photo URLs (bounded concurrency) and a zero aggregate.
5. Output is catalog views first, then external views. No ranking here; distance ordering
   is up to the client.
"""
import asyncio
import logging
from typing import Callable

from sqlalchemy.orm import Session

from app.core.errors import ProviderError
from app.services.discovery.views import VenueView, catalog_view, external_view
from app.services.providers.base import PlaceProvider
from app.services.providers.types import ExternalPlace
from app.services.venue_service import list_catalog_venues

logger = logging.getLogger(__name__)


def load_catalog_views(session_factory: Callable[[], Session]) -> list[VenueView]:
    """Catalog venues with computed aggregates. Opens and closes its own session (thread-safe)."""
    db = session_factory()
    try:
        return [catalog_view(v, reports) for v, reports in list_catalog_venues(db)]
    finally:
        db.close()


def dedupe_external(catalog: list[VenueView], places: list[ExternalPlace]) -> list[ExternalPlace]:
    known = {v.external_place_id for v in catalog if v.external_place_id}
    return [p for p in places if p.place_id not in known]


async def _search_external(
    provider: PlaceProvider,
    lat: float,
    lon: float,
    query: str,
    radius_meters: int,
    timeout: float,
) -> list[ExternalPlace]:
    try:
        return await asyncio.wait_for(provider.search_nearby(lat, lon, query, radius_meters), timeout)
    except ProviderError as e:
        logger.warning("External places search failed; continuing with catalog only: %s", e, exc_info=True)
    except asyncio.TimeoutError:
        logger.warning("External places search timed out after %ss; continuing with catalog only", timeout)
    return []


async def _resolve_photos(provider: PlaceProvider, places: list[ExternalPlace], workers: int) -> list[list[str]]:
    semaphore = asyncio.Semaphore(max(1, workers))

    async def one(place: ExternalPlace) -> list[str]:
        async with semaphore:
            try:
                return await provider.get_photo_urls(place.place_id)
            except ProviderError as e:
                logger.warning("Photo lookup failed for %s: %s", place.place_id, e)
                return []

    return list(await asyncio.gather(*(one(p) for p in places)))


async def discover(
    *,
    session_factory: Callable[[], Session],
    provider: PlaceProvider,
    lat: float | None,
    lon: float | None,
    query: str,
    radius_meters: int,
    catalog_timeout: float = 5.0,
    external_timeout: float = 15.0,
    photo_workers: int = 4,
) -> list[VenueView]:
    """Fused venue list. Without a geo-point only the catalog is returned."""
    catalog_task = asyncio.ensure_future(
        asyncio.wait_for(asyncio.to_thread(load_catalog_views, session_factory), catalog_timeout)
    )
    external_task = None
    if lat is not None and lon is not None:
        external_task = asyncio.ensure_future(
            _search_external(provider, lat, lon, query, radius_meters, external_timeout)
        )
    try:
        catalog = await catalog_task
    except BaseException:
        if external_task is not None:
            external_task.cancel()
        raise
    places = await external_task if external_task is not None else []

    survivors = dedupe_external(catalog, places)
    if len(survivors) < len(places):
        logger.debug("Discovery: %s external results already in catalog", len(places) - len(survivors))
    photos = await _resolve_photos(provider, survivors, photo_workers)
    externals = [external_view(place, urls) for place, urls in zip(survivors, photos)]
    logger.info("Discovery: %s catalog + %s external venues", len(catalog), len(externals))
    return catalog + externals
