"""
Report submission: rate limit first, then (for external-only slugs) materialization, then
append the report. Aggregates are not touched here; they are recomputed on the next read.
"""
import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.errors import RateLimitExceeded, VenueNotFound
from app.models.venue import Venue
from app.models.vibe_report import VibeReport
from app.services.discovery.views import is_external_slug, place_id_from_slug
from app.services.materialize import ExternalVenuePayload, ensure_catalog_venue
from app.services.rate_limit import RateLimiter, RateLimitResult, limiter_identity
from app.services.venue_service import create_vibe_report, get_venue_by_slug

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    report: VibeReport
    venue: Venue
    rate_limit: RateLimitResult
    redirect_slug: str | None = None  # set when the external slug was replaced by a catalog slug


def resolve_target_venue(
    db: Session,
    slug: str,
    external_venue: ExternalVenuePayload | None,
    *,
    max_slug_attempts: int = 50,
) -> tuple[Venue, str | None]:
    """Catalog venue for slug, materializing external-only slugs. Returns (venue, redirect_slug)."""
    if is_external_slug(slug):
        if external_venue is None or external_venue.external_place_id != place_id_from_slug(slug):
            raise VenueNotFound(slug)
        venue = ensure_catalog_venue(db, external_venue, max_attempts=max_slug_attempts)
        return venue, venue.slug
    venue = get_venue_by_slug(db, slug)
    if venue is None:
        raise VenueNotFound(slug)
    return venue, None


async def submit_vibe_report(
    db: Session,
    limiter: RateLimiter,
    *,
    slug: str,
    vibe_level: int,
    queue_length: str | None = None,
    cover_charge: float | None = None,
    music_genre: str | None = None,
    notes: str | None = None,
    image_url: str | None = None,
    device_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    user_id: str | None = None,
    external_venue: ExternalVenuePayload | None = None,
    max_slug_attempts: int = 50,
) -> SubmissionResult:
    rate = await limiter.check(limiter_identity(device_id, ip_address))
    if not rate.allowed:
        raise RateLimitExceeded(rate.reset_at)

    def record() -> tuple[Venue, str | None, VibeReport]:
        venue, redirect_slug = resolve_target_venue(db, slug, external_venue, max_slug_attempts=max_slug_attempts)
        report = create_vibe_report(
            db,
            venue,
            vibe_level=vibe_level,
            queue_length=queue_length,
            cover_charge=cover_charge,
            music_genre=music_genre,
            notes=notes,
            image_url=image_url,
            ip_address=ip_address,
            user_agent=user_agent,
            user_id=user_id,
        )
        db.refresh(venue)  # expired by the report commit; load here, not on the event loop
        return venue, redirect_slug, report

    # Blocking catalog work (lookup, materialize, insert) runs off the event loop
    venue, redirect_slug, report = await asyncio.to_thread(record)
    logger.info("Vibe report %s for venue %s (remaining=%s)", report.id, venue.slug, rate.remaining)
    return SubmissionResult(report=report, venue=venue, rate_limit=rate, redirect_slug=redirect_slug)
