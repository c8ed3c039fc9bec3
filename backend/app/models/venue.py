"""Catalog venue. Slug is the public identity; external_place_id links it to the places provider."""
import json
import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(256), nullable=False)
    slug = Column(String(256), nullable=False, unique=True, index=True)
    address = Column(String(512), nullable=False, default="")
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    categories_json = Column(Text, nullable=False, default="[]")  # JSON list of tags
    is_featured = Column(Boolean, nullable=False, default=False)
    cover_photo_url = Column(String(1024), nullable=True)
    # Not unique: two concurrent materializations of one place may both land (accepted race)
    external_place_id = Column(String(256), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    vibe_reports = relationship(
        "VibeReport",
        back_populates="venue",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def categories(self) -> list[str]:
        try:
            value = json.loads(self.categories_json or "[]")
        except (TypeError, json.JSONDecodeError):
            return []
        return [str(c) for c in value] if isinstance(value, list) else []

    @categories.setter
    def categories(self, tags: list[str]) -> None:
        # Unordered set of tags; keep first-seen order for stable output
        self.categories_json = json.dumps(list(dict.fromkeys(t.strip() for t in tags if t and t.strip())))
