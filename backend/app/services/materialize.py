"""
Materialization: turn an external-only place into a permanent catalog venue the first time
someone reports on it.

Slug = slugify(name); if taken, name-1, name-2, ... up to a bounded number of attempts.
Each check is a point lookup, not a reservation. A unique-constraint hit on insert (another
request took the slug in between) just moves on to the next suffix.

Known limitation: two concurrent submissions for the same place can both pass the
external-id lookup and create two catalog rows for one real venue. Nothing here prevents
that; a unique constraint on external_place_id would be the real guard.
"""
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.constants import FALLBACK_SLUG
from app.core.errors import SlugConflict
from app.models.venue import Venue
from app.services.venue_service import get_venue_by_external_id, slug_exists

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    """'The Rex!!' -> 'the-rex'; 'Café  Noir' -> 'cafe-noir'. Never empty."""
    ascii_name = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    s = _NON_SLUG_CHARS.sub("", ascii_name.lower()).strip()
    s = _WHITESPACE.sub("-", s)
    s = _HYPHENS.sub("-", s).strip("-")
    return s or FALLBACK_SLUG


def slug_candidates(base: str, max_attempts: int) -> Iterator[str]:
    yield base
    for n in range(1, max_attempts):
        yield f"{base}-{n}"


@dataclass
class ExternalVenuePayload:
    """What the client sends back about an external-only venue it is reporting on."""
    external_place_id: str
    name: str
    address: str
    lat: float
    lon: float
    photo_url: str | None = None
    categories: list[str] = field(default_factory=list)


def ensure_catalog_venue(db: Session, payload: ExternalVenuePayload, *, max_attempts: int = 50) -> Venue:
    """
    Catalog venue for this place: the existing one if the place was already materialized,
    otherwise a new row (featured=False, no reports). Raises SlugConflict when every slug
    candidate is taken.
    """
    existing = get_venue_by_external_id(db, payload.external_place_id)
    if existing is not None:
        return existing

    base = slugify(payload.name)
    for slug in slug_candidates(base, max_attempts):
        if slug_exists(db, slug):
            continue
        venue = Venue(
            name=payload.name.strip(),
            slug=slug,
            address=(payload.address or "").strip(),
            lat=payload.lat,
            lon=payload.lon,
            is_featured=False,
            cover_photo_url=payload.photo_url or None,
            external_place_id=payload.external_place_id,
        )
        venue.categories = payload.categories
        db.add(venue)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if not slug_exists(db, slug):
                # Some other constraint failed; retrying with another slug cannot help
                logger.warning("Materializing place %s failed on insert", payload.external_place_id, exc_info=True)
                raise
            logger.info("Slug %s taken concurrently; trying next suffix", slug)
            continue
        db.refresh(venue)
        logger.info("Materialized place %s as venue %s (%s)", payload.external_place_id, venue.id, slug)
        return venue

    logger.warning("No free slug for %r after %s attempts", base, max_attempts)
    raise SlugConflict(base, max_attempts)
