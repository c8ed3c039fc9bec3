"""
Centralized domain constants (Encapsulate What Changes).

Tunables that differ per environment live in app.config.Settings; the values here are
part of the data model and wire format and do not change between deployments.
"""

# External-only venues: id and slug are both "external_<placeId>" until materialized
EXTERNAL_ID_PREFIX = "external_"

SOURCE_CATALOG = "catalog"
SOURCE_EXTERNAL = "external"

# Cache keys (CacheEntry). Rate-limit counters share the backend under their own prefix.
CACHE_KEY_DETAILS = "details:{place_id}"
CACHE_KEY_PHOTOS = "photos:{place_id}"
RATE_LIMIT_KEY = "ratelimit:{identity}"

# Vibe intensity is an ordinal 1..5, enforced at ingestion (not by aggregation)
VIBE_LEVEL_MIN = 1
VIBE_LEVEL_MAX = 5

# Queue length: 4-point ordinal scale. Order matters (index = rank).
QUEUE_LENGTHS = ("NONE", "SHORT", "LONG", "INSANE")
QUEUE_LENGTH_RANK = {label: rank for rank, label in enumerate(QUEUE_LENGTHS)}

# Aggregates: "recent" window for vibes_last_hour
RECENT_WINDOW_SECONDS = 60 * 60

# Slug used when a venue name has no usable characters
FALLBACK_SLUG = "venue"

ADMIN_HEADER = "x-admin-key"
