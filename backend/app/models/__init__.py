from app.models.venue import Venue
from app.models.vibe_report import VibeReport

__all__ = [
    "Venue",
    "VibeReport",
]
