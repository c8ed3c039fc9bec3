"""Protocol for places providers. Discovery and materialization only see this contract."""
from typing import AsyncIterator, Protocol

from app.services.providers.types import ExternalPlace


class PlaceProvider(Protocol):
    @property
    def provider_id(self) -> str:
        """Unique id (e.g. 'google')."""
        ...

    def iter_nearby_pages(
        self,
        lat: float,
        lon: float,
        query: str,
        radius_meters: int,
    ) -> AsyncIterator[list[ExternalPlace]]:
        """Yield one page of results at a time, honoring the inter-page delay between pages."""
        ...

    async def search_nearby(
        self,
        lat: float,
        lon: float,
        query: str,
        radius_meters: int,
    ) -> list[ExternalPlace]:
        """
        All pages, drained to exhaustion. Raises ProviderError on any failed page;
        callers decide whether to degrade.
        """
        ...

    async def get_details(self, place_id: str) -> ExternalPlace:
        ...

    async def get_photo_urls(self, place_id: str) -> list[str]:
        """Resolvable photo URLs (cached). Empty list when the place has no photos."""
        ...
