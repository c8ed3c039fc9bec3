"""
Discovery: catalog venues fused with nearby provider places (see fusion.discover).

- Catalog venues carry aggregates computed from their visible reports.
- External-only places get id/slug external_<placeId> and a zero aggregate.
"""
from app.services.discovery.fusion import dedupe_external, discover, load_catalog_views
from app.services.discovery.views import (
    VenueView,
    catalog_view,
    external_slug,
    external_view,
    is_external_slug,
    place_id_from_slug,
)

__all__ = [
    "VenueView",
    "catalog_view",
    "dedupe_external",
    "discover",
    "external_slug",
    "external_view",
    "is_external_slug",
    "load_catalog_views",
    "place_id_from_slug",
]
