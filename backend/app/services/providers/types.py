"""Normalized place record returned by the places provider, independent of its wire format."""
import logging
from typing import Any

logger = logging.getLogger(__name__)


class ExternalPlace:
    """One place known to the provider. Coordinates are required (needed for materialization)."""

    __slots__ = (
        "place_id",
        "name",
        "address",
        "lat",
        "lon",
        "types",
        "rating",
        "user_ratings_total",
        "price_level",
        "business_status",
    )

    def __init__(
        self,
        *,
        place_id: str,
        name: str,
        address: str,
        lat: float,
        lon: float,
        types: list[str] | None = None,
        rating: float | None = None,
        user_ratings_total: int | None = None,
        price_level: int | None = None,
        business_status: str | None = None,
    ):
        self.place_id = place_id
        self.name = name
        self.address = address
        self.lat = lat
        self.lon = lon
        self.types = list(types or [])
        self.rating = rating
        self.user_ratings_total = user_ratings_total
        self.price_level = price_level
        self.business_status = business_status

    def to_dict(self) -> dict[str, Any]:
        return {slot: getattr(self, slot) for slot in self.__slots__}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExternalPlace":
        return cls(**{k: data.get(k) for k in cls.__slots__ if k in data})

    def __repr__(self) -> str:
        return f"ExternalPlace(place_id={self.place_id!r}, name={self.name!r})"


def _float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return int(value)
    except (OverflowError, ValueError):
        return None


def _str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_place(p: Any) -> ExternalPlace | None:
    """Map one Places API result (nearby search or details) to ExternalPlace. None if unusable."""
    if not isinstance(p, dict):
        return None
    place_id = _str(p.get("place_id"))
    name = _str(p.get("name"))
    geometry = p.get("geometry")
    location = geometry.get("location") if isinstance(geometry, dict) else None
    if not isinstance(location, dict):
        location = {}
    lat = _float(location.get("lat"))
    lon = _float(location.get("lng"))
    if not place_id or not name or lat is None or lon is None:
        logger.debug("Places: skip malformed result %r", place_id or name)
        return None
    types = p.get("types")
    status = p.get("business_status")
    return ExternalPlace(
        place_id=place_id,
        name=name,
        address=_str(p.get("formatted_address")) or _str(p.get("vicinity")),
        lat=lat,
        lon=lon,
        types=[t for t in types if isinstance(t, str)] if isinstance(types, list) else [],
        rating=_float(p.get("rating")),
        user_ratings_total=_int(p.get("user_ratings_total")),
        price_level=_int(p.get("price_level")),
        business_status=status if isinstance(status, str) else None,
    )


def parse_places(results: Any) -> list[ExternalPlace]:
    if not isinstance(results, list):
        return []
    places = []
    for r in results:
        place = parse_place(r)
        if place is not None:
            places.append(place)
    return places
