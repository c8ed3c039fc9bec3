"""
Places providers. Each provider fetches in its own way but returns ExternalPlace records,
so discovery and materialization stay provider-agnostic.
"""
from app.services.providers.base import PlaceProvider
from app.services.providers.google_places import GooglePlacesProvider
from app.services.providers.types import ExternalPlace

__all__ = [
    "ExternalPlace",
    "GooglePlacesProvider",
    "PlaceProvider",
]
