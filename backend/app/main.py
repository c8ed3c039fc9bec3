"""
FastAPI app entrypoint.

Venue discovery (catalog + Google Places), crowd-sourced vibe reports, admin moderation.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from app.api.deps import get_cache_selection
from app.api.routes import admin, venues, vibe_reports
from app.config import settings
from app.db.session import create_tables
from app.services.cache import CacheBackendSelection, CacheStore
from app.services.providers import GooglePlacesProvider
from app.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()

    # Backend choice is made once here and shared by the cache store and the rate limiter.
    selection = CacheBackendSelection.from_settings(settings)
    cache = CacheStore(selection)
    client = httpx.AsyncClient(timeout=settings.places_request_timeout_seconds)
    app.state.cache_selection = selection
    app.state.http_client = client
    app.state.place_provider = GooglePlacesProvider.from_settings(settings, client, cache)
    app.state.rate_limiter = RateLimiter(
        selection,
        max_requests=settings.rate_limit_max_reports,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not settings.google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY not set; discovery will return catalog venues only")
    logger.info("Backend ready (cache backend: %s)", selection.name)
    yield
    await client.aclose()
    await selection.aclose()


app = FastAPI(title="Vibe Check", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(venues.router, prefix="/venues", tags=["venues"])
app.include_router(vibe_reports.router, prefix="/venues", tags=["vibe-reports"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Vibe Check API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health(selection: CacheBackendSelection = Depends(get_cache_selection)) -> dict[str, str]:
    return {"status": "ok", "cache_backend": selection.name}
