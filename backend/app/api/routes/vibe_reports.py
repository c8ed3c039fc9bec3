"""
Vibe reports API: list visible reports for a venue, submit a report.

Submitting to an external_<placeId> slug materializes the place into the catalog first;
the response then carries redirect_slug so the client can move to the permanent URL.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_rate_limiter
from app.config import settings
from app.core.constants import QUEUE_LENGTHS, VIBE_LEVEL_MAX, VIBE_LEVEL_MIN
from app.core.errors import VibeCheckError, domain_error_to_http, rate_limit_headers
from app.db.session import get_db
from app.services.materialize import ExternalVenuePayload
from app.services.rate_limit import RateLimiter
from app.services.venue_service import (
    count_visible_reports,
    get_venue_by_slug,
    list_visible_reports,
    report_to_dict,
)
from app.services.vibe_report_service import submit_vibe_report

router = APIRouter()
logger = logging.getLogger(__name__)


class ExternalVenueBody(BaseModel):
    external_place_id: str = Field(..., min_length=1, max_length=256)
    name: str = Field(..., min_length=1, max_length=256)
    address: str = Field("", max_length=512)
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    photo_url: str | None = Field(None, max_length=1024)
    categories: list[str] = Field(default_factory=list, max_length=20)


class SubmitVibeReportBody(BaseModel):
    vibe_level: int = Field(..., ge=VIBE_LEVEL_MIN, le=VIBE_LEVEL_MAX)
    queue_length: str | None = Field(None, description="NONE | SHORT | LONG | INSANE")
    cover_charge: float | None = Field(None, ge=0)
    music_genre: str | None = Field(None, max_length=128)
    notes: str | None = Field(None, max_length=1000)
    image_url: str | None = Field(None, max_length=1024)
    device_id: str | None = Field(None, max_length=128, description="Preferred rate-limit identity")
    client_ip: str | None = Field(None, max_length=64, description="Falls back to the connection address")
    external_venue: ExternalVenueBody | None = Field(None, description="Required for external_<placeId> slugs")

    @field_validator("queue_length", mode="before")
    @classmethod
    def normalize_queue_length(cls, v: Any) -> str | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        label = str(v).strip().upper()
        if label not in QUEUE_LENGTHS:
            raise ValueError(f"queue_length must be one of: {', '.join(QUEUE_LENGTHS)}")
        return label


@router.get("/{slug}/vibe-reports")
def list_vibe_reports(
    slug: str,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    venue = get_venue_by_slug(db, slug)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    rows = list_visible_reports(db, venue.id, limit=limit)
    return {
        "vibe_reports": [report_to_dict(r) for r in rows],
        "total": count_visible_reports(db, venue.id),
    }


@router.post("/{slug}/vibe-reports", status_code=201)
async def create_vibe_report(
    slug: str,
    body: SubmitVibeReportBody,
    request: Request,
    response: Response,
    user_agent: str | None = Header(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    """
    Submit a report. Counts against the rate limit (device id, else IP) before anything else.
    429 with reset_time when over the limit; 404 when the venue cannot be found or
    materialized.
    """
    ip_address = (body.client_ip or "").strip() or (request.client.host if request.client else None)
    external = ExternalVenuePayload(**body.external_venue.model_dump()) if body.external_venue else None
    try:
        result = await submit_vibe_report(
            db,
            limiter,
            slug=slug,
            vibe_level=body.vibe_level,
            queue_length=body.queue_length,
            cover_charge=body.cover_charge,
            music_genre=body.music_genre,
            notes=body.notes,
            image_url=body.image_url,
            device_id=body.device_id,
            ip_address=ip_address,
            user_agent=user_agent,
            external_venue=external,
            max_slug_attempts=settings.materialize_max_slug_attempts,
        )
    except VibeCheckError as e:
        raise domain_error_to_http(e) from e

    rate = result.rate_limit
    for name, value in rate_limit_headers(rate.remaining, rate.reset_at).items():
        response.headers[name] = value
    report = report_to_dict(result.report)
    report["venue"] = {"id": result.venue.id, "name": result.venue.name, "slug": result.venue.slug}
    return {
        "success": True,
        "vibe_report": report,
        "rate_limit": {"remaining": rate.remaining, "reset_time": rate.reset_at.isoformat()},
        "redirect_slug": result.redirect_slug,
    }
