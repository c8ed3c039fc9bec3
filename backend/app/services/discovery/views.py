"""
VenueView: the one shape discovery and venue endpoints return, for both catalog venues and
external-only places. External-only views get a synthesized id/slug "external_<placeId>"
(valid only as long as the client holds the response) and a zero aggregate.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.core.constants import EXTERNAL_ID_PREFIX, SOURCE_CATALOG, SOURCE_EXTERNAL
from app.models.venue import Venue
from app.models.vibe_report import VibeReport
from app.services.aggregation import EMPTY_SNAPSHOT, AggregateSnapshot, aggregate
from app.services.providers.types import ExternalPlace


def external_slug(place_id: str) -> str:
    return f"{EXTERNAL_ID_PREFIX}{place_id}"


def is_external_slug(slug: str) -> bool:
    return slug.startswith(EXTERNAL_ID_PREFIX) and len(slug) > len(EXTERNAL_ID_PREFIX)


def place_id_from_slug(slug: str) -> str:
    return slug[len(EXTERNAL_ID_PREFIX):]


@dataclass
class VenueView:
    id: str
    slug: str
    name: str
    address: str
    lat: float
    lon: float
    source: str
    aggregated_data: AggregateSnapshot
    categories: list[str] = field(default_factory=list)
    is_featured: bool = False
    cover_photo_url: str | None = None
    photo_urls: list[str] = field(default_factory=list)
    external_place_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "address": self.address,
            "lat": self.lat,
            "lon": self.lon,
            "categories": list(self.categories),
            "is_featured": self.is_featured,
            "cover_photo_url": self.cover_photo_url,
            "photo_urls": list(self.photo_urls),
            "external_place_id": self.external_place_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "source": self.source,
            "aggregated_data": self.aggregated_data.to_dict(),
        }


def catalog_view(venue: Venue, reports: list[VibeReport], now: datetime | None = None) -> VenueView:
    return VenueView(
        id=venue.id,
        slug=venue.slug,
        name=venue.name,
        address=venue.address or "",
        lat=venue.lat,
        lon=venue.lon,
        source=SOURCE_CATALOG,
        aggregated_data=aggregate(reports, now=now),
        categories=venue.categories,
        is_featured=bool(venue.is_featured),
        cover_photo_url=venue.cover_photo_url,
        photo_urls=[venue.cover_photo_url] if venue.cover_photo_url else [],
        external_place_id=venue.external_place_id,
        created_at=venue.created_at,
        updated_at=venue.updated_at,
    )


def external_view(place: ExternalPlace, photo_urls: list[str] | None = None) -> VenueView:
    photos = list(photo_urls or [])
    now = datetime.now(timezone.utc)
    return VenueView(
        id=external_slug(place.place_id),
        slug=external_slug(place.place_id),
        name=place.name,
        address=place.address,
        lat=place.lat,
        lon=place.lon,
        source=SOURCE_EXTERNAL,
        aggregated_data=EMPTY_SNAPSHOT,
        categories=list(place.types),
        cover_photo_url=photos[0] if photos else None,
        photo_urls=photos,
        external_place_id=place.place_id,
        created_at=now,
        updated_at=now,
    )
