"""
Request dependencies for process-wide components built in main.lifespan.
Tests swap these via app.dependency_overrides.
"""
from fastapi import Request

from app.services.cache import CacheBackendSelection
from app.services.providers import PlaceProvider
from app.services.rate_limit import RateLimiter


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_place_provider(request: Request) -> PlaceProvider:
    return request.app.state.place_provider


def get_cache_selection(request: Request) -> CacheBackendSelection:
    return request.app.state.cache_selection
