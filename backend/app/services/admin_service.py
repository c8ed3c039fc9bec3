"""
Admin: report moderation. Flagging is a soft delete; flagged reports drop out of public
reads and aggregates immediately because those queries filter on flagged = false.
"""
import logging

from sqlalchemy.orm import Session, joinedload

from app.models.vibe_report import VibeReport

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def list_reports(
    db: Session,
    *,
    flagged: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[VibeReport]]:
    """(total, page) of reports newest first, optionally filtered by flag state. Venue eager-loaded."""
    q = db.query(VibeReport)
    if flagged is not None:
        q = q.filter(VibeReport.flagged.is_(flagged))
    total = q.count()
    rows = (
        q.options(joinedload(VibeReport.venue))
        .order_by(VibeReport.submitted_at.desc())
        .offset(max(0, offset))
        .limit(max(1, min(MAX_PAGE_SIZE, limit)))
        .all()
    )
    return total, rows


def set_report_flag(db: Session, report_id: str, flagged: bool = True) -> VibeReport | None:
    """Flag (hide) or unflag a report. Returns None if the report does not exist."""
    report = db.query(VibeReport).filter(VibeReport.id == report_id).first()
    if report is None:
        return None
    report.flagged = flagged
    db.commit()
    db.refresh(report)
    logger.info("Report %s flagged=%s", report_id, flagged)
    return report
