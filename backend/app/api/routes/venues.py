"""
Venues API: discovery (catalog + nearby places), catalog listing, venue detail and
external place lookup.

Mounted under /venues. Static paths (/discover, /external/...) are declared before /{slug}.
"""
import asyncio
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from app.api.deps import get_place_provider
from app.config import settings
from app.core.errors import ProviderError, domain_error_to_http
from app.db.session import get_db, get_session_factory
from app.models.venue import Venue
from app.services.discovery import catalog_view, discover, external_view
from app.services.providers import PlaceProvider
from app.services.venue_service import (
    get_venue_by_external_id,
    get_venue_by_slug,
    list_catalog_venues,
    list_visible_reports,
    report_to_dict,
)

router = APIRouter()
logger = logging.getLogger(__name__)

VENUE_REPORTS_LIMIT = 50


def _venue_detail(db: Session, venue: Venue) -> dict[str, Any]:
    reports = list_visible_reports(db, venue.id)
    out = catalog_view(venue, reports).to_dict()
    out["vibe_reports"] = [report_to_dict(r) for r in reports[:VENUE_REPORTS_LIMIT]]
    return out


def _catalog_venue_detail(db: Session, place_id: str) -> dict[str, Any] | None:
    venue = get_venue_by_external_id(db, place_id)
    return _venue_detail(db, venue) if venue is not None else None


@router.get("/discover")
async def discover_venues(
    lat: float | None = Query(None, ge=-90, le=90),
    lon: float | None = Query(None, ge=-180, le=180),
    query: str | None = Query(None, max_length=200),
    radius: int | None = Query(None, ge=1, le=50000, description="Search radius in meters"),
    provider: PlaceProvider = Depends(get_place_provider),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> dict[str, Any]:
    """
    Catalog venues (with live aggregates) followed by nearby places from Google that are not
    yet in the catalog. Without lat/lon only catalog venues are returned. If the places
    provider fails the response still succeeds with catalog venues only.
    """
    if (lat is None) != (lon is None):
        raise HTTPException(status_code=422, detail="lat and lon must be given together")
    try:
        views = await asyncio.wait_for(
            discover(
                session_factory=session_factory,
                provider=provider,
                lat=lat,
                lon=lon,
                query=(query or "").strip() or settings.places_default_query,
                radius_meters=radius or settings.places_default_radius_meters,
                catalog_timeout=settings.discovery_catalog_timeout_seconds,
                external_timeout=settings.discovery_external_timeout_seconds,
                photo_workers=settings.discovery_photo_workers,
            ),
            settings.discovery_deadline_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.warning("Discovery timed out (lat=%s lon=%s)", lat, lon)
        raise domain_error_to_http(e) from e
    return {"venues": [v.to_dict() for v in views], "total": len(views)}


@router.get("")
def list_venues(db: Session = Depends(get_db)) -> dict[str, Any]:
    """All catalog venues, newest first, each with aggregated_data."""
    venues = [catalog_view(v, reports).to_dict() for v, reports in list_catalog_venues(db)]
    return {"venues": venues, "total": len(venues)}


@router.get("/external/{place_id}")
async def get_external_venue(
    place_id: str = Path(..., min_length=1, max_length=256),
    db: Session = Depends(get_db),
    provider: PlaceProvider = Depends(get_place_provider),
) -> dict[str, Any]:
    """
    External-only venue built from Google place details (id/slug external_<placeId>, zero
    aggregate). If the place was already materialized, the catalog venue is returned instead.
    """
    existing = await asyncio.to_thread(_catalog_venue_detail, db, place_id)
    if existing is not None:
        return existing
    try:
        place = await provider.get_details(place_id)
    except ProviderError as e:
        logger.warning("Place details failed for %s: %s", place_id, e)
        raise domain_error_to_http(e) from e
    try:
        photos = await provider.get_photo_urls(place_id)
    except ProviderError as e:
        logger.warning("Photo lookup failed for %s: %s", place_id, e)
        photos = []
    out = external_view(place, photos).to_dict()
    out["vibe_reports"] = []
    return out


@router.get("/{slug}")
def get_venue(slug: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Catalog venue with its visible reports (newest first) and aggregated_data."""
    venue = get_venue_by_slug(db, slug)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    return _venue_detail(db, venue)
