"""
One crowd-sourced report of live conditions at a venue. Immutable after submission except
for the moderation flag (flagged = soft-deleted, hidden from public reads and aggregates).
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.venue import new_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VibeReport(Base):
    __tablename__ = "vibe_reports"

    id = Column(String(32), primary_key=True, default=new_id)
    venue_id = Column(String(32), ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    vibe_level = Column(Integer, nullable=False)  # 1..5, bounds checked at ingestion
    queue_length = Column(String(16), nullable=True)  # NONE | SHORT | LONG | INSANE
    cover_charge = Column(Float, nullable=True)
    music_genre = Column(String(128), nullable=True)
    notes = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)

    # Reporter: authenticated user ref XOR anonymous fingerprint
    user_id = Column(String(64), nullable=True, index=True)
    user_anon_id = Column(String(64), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    flagged = Column(Boolean, nullable=False, default=False, index=True)

    venue = relationship("Venue", back_populates="vibe_reports")

    __table_args__ = (
        CheckConstraint(
            "user_id IS NULL OR user_anon_id IS NULL",
            name="ck_vibe_reports_single_reporter",
        ),
    )
