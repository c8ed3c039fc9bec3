"""
Admin API: report moderation. Every route requires the x-admin-key header.
"""
import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.config import settings
from app.core.constants import ADMIN_HEADER
from app.db.session import get_db
from app.services.admin_service import MAX_PAGE_SIZE, list_reports, set_report_flag
from app.services.venue_service import report_to_dict

logger = logging.getLogger(__name__)


def require_admin(x_admin_key: str | None = Header(None, alias=ADMIN_HEADER)) -> None:
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"www-authenticate": "api-key"})


router = APIRouter(dependencies=[Depends(require_admin)])


class FlagReportBody(BaseModel):
    flagged: bool = True


@router.get("/reports")
def admin_list_reports(
    flagged: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """All reports (including flagged unless filtered), newest first, with their venue."""
    total, rows = list_reports(db, flagged=flagged, limit=limit, offset=offset)
    return {"vibe_reports": [report_to_dict(r, include_venue=True) for r in rows], "total": total}


@router.patch("/reports/{report_id}")
def admin_flag_report(report_id: str, body: FlagReportBody, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Flag (soft-delete) or restore a report."""
    report = set_report_flag(db, report_id, body.flagged)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"success": True, "vibe_report": report_to_dict(report, include_venue=True)}
