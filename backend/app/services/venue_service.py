"""
Catalog reads and writes: venues by slug / external id, visible reports, report creation.

Visible = not flagged. Reports are always returned newest first.
"""
import hashlib
import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from app.models.venue import Venue
from app.models.vibe_report import VibeReport

logger = logging.getLogger(__name__)


def anon_fingerprint(ip_address: str | None, user_agent: str | None) -> str:
    """Stable anonymous reporter id from IP + user agent. 32-char hash."""
    raw = f"{ip_address or ''}|{user_agent or ''}"
    return hashlib.sha256(raw.encode()).hexdigest()[:32]


def get_venue_by_slug(db: Session, slug: str) -> Venue | None:
    return db.query(Venue).filter(Venue.slug == slug).first()


def get_venue_by_external_id(db: Session, place_id: str) -> Venue | None:
    """Oldest catalog venue for this provider place (there can be more than one after a race)."""
    return (
        db.query(Venue)
        .filter(Venue.external_place_id == place_id)
        .order_by(Venue.created_at.asc())
        .first()
    )


def slug_exists(db: Session, slug: str) -> bool:
    return db.query(Venue.id).filter(Venue.slug == slug).first() is not None


def _visible_reports_query(db: Session):
    return db.query(VibeReport).filter(VibeReport.flagged.is_(False))


def list_visible_reports(db: Session, venue_id: str, limit: int | None = None) -> list[VibeReport]:
    q = _visible_reports_query(db).filter(VibeReport.venue_id == venue_id).order_by(VibeReport.submitted_at.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def count_visible_reports(db: Session, venue_id: str) -> int:
    return _visible_reports_query(db).filter(VibeReport.venue_id == venue_id).count()


def list_catalog_venues(db: Session) -> list[tuple[Venue, list[VibeReport]]]:
    """
    All catalog venues (newest first), each with its visible reports (newest first).
    Two queries regardless of venue count; no geo filter (callers filter by distance).
    """
    venues = db.query(Venue).order_by(Venue.created_at.desc()).all()
    if not venues:
        return []
    by_venue: dict[str, list[VibeReport]] = defaultdict(list)
    rows = (
        _visible_reports_query(db)
        .filter(VibeReport.venue_id.in_([v.id for v in venues]))
        .order_by(VibeReport.submitted_at.desc())
        .all()
    )
    for r in rows:
        by_venue[r.venue_id].append(r)
    return [(v, by_venue.get(v.id, [])) for v in venues]


def create_vibe_report(
    db: Session,
    venue: Venue,
    *,
    vibe_level: int,
    queue_length: str | None = None,
    cover_charge: float | None = None,
    music_genre: str | None = None,
    notes: str | None = None,
    image_url: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    user_id: str | None = None,
) -> VibeReport:
    """
    Append a report. Reporter is the authenticated user when user_id is given, otherwise an
    anonymous fingerprint; never both.
    """
    report = VibeReport(
        venue_id=venue.id,
        vibe_level=vibe_level,
        queue_length=queue_length,
        cover_charge=cover_charge,
        music_genre=(music_genre or "").strip() or None,
        notes=(notes or "").strip() or None,
        image_url=(image_url or "").strip() or None,
        ip_address=ip_address,
        user_agent=user_agent,
        user_id=user_id,
        user_anon_id=None if user_id else anon_fingerprint(ip_address, user_agent),
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def report_to_dict(r: VibeReport, *, include_venue: bool = False) -> dict:
    out = {
        "id": r.id,
        "venue_id": r.venue_id,
        "submitted_at": r.submitted_at.isoformat() if r.submitted_at else None,
        "vibe_level": r.vibe_level,
        "queue_length": r.queue_length,
        "cover_charge": r.cover_charge,
        "music_genre": r.music_genre,
        "notes": r.notes,
        "image_url": r.image_url,
        "flagged": bool(r.flagged),
    }
    if include_venue and r.venue is not None:
        out["venue"] = {"id": r.venue.id, "name": r.venue.name, "slug": r.venue.slug}
    return out
