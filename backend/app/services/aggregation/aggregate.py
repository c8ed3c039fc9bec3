"""
Rollup statistics for one venue, recomputed from its report history on every read.

Pure function, no I/O. The caller passes only visible reports: flagged ones are excluded by
the catalog query, not here. Volumes per venue are small, so nothing is cached.
"""
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol

from app.core.constants import QUEUE_LENGTH_RANK, QUEUE_LENGTHS, RECENT_WINDOW_SECONDS


class ReportLike(Protocol):
    """Fields of a vibe report the aggregation reads (ORM row or any object with these attrs)."""
    submitted_at: datetime
    vibe_level: int | None
    queue_length: str | None
    cover_charge: float | None
    music_genre: str | None


@dataclass(frozen=True)
class AggregateSnapshot:
    total_vibes: int = 0
    vibes_last_hour: int = 0
    average_vibe_level: float | None = None
    average_queue_length: str | None = None
    average_cover_charge: float | None = None
    most_common_music_genre: str | None = None
    last_vibe_report_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_vibes": self.total_vibes,
            "vibes_last_hour": self.vibes_last_hour,
            "average_vibe_level": self.average_vibe_level,
            "average_queue_length": self.average_queue_length,
            "average_cover_charge": self.average_cover_charge,
            "most_common_music_genre": self.most_common_music_genre,
            "last_vibe_report_at": self.last_vibe_report_at.isoformat() if self.last_vibe_report_at else None,
        }


EMPTY_SNAPSHOT = AggregateSnapshot()


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def round2(value: float) -> float:
    """Half-up to 2 decimals (3.335 -> 3.34), independent of binary float representation."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def mean_queue_length(labels: list[str]) -> str | None:
    """
    Ordinal mean: rank each label, average the ranks, round half up, map back.
    A tie at the midpoint goes to the higher-intensity label (SHORT+LONG -> LONG).
    """
    ranks = [QUEUE_LENGTH_RANK[label] for label in labels if label in QUEUE_LENGTH_RANK]
    if not ranks:
        return None
    avg = sum(ranks) / len(ranks)
    rank = min(len(QUEUE_LENGTHS) - 1, max(0, math.floor(avg + 0.5)))
    return QUEUE_LENGTHS[rank]


def most_common(values: list[str]) -> str | None:
    """Highest count wins; on a tie the value seen first wins."""
    counts = Counter(values)  # insertion-ordered: first occurrence order
    best: str | None = None
    best_count = 0
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return best


def aggregate(reports: Iterable[ReportLike], now: datetime | None = None) -> AggregateSnapshot:
    """Snapshot for a venue's visible reports. Empty input gives zero counts and null stats."""
    reports = list(reports)
    if not reports:
        return EMPTY_SNAPSHOT

    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    recent_cutoff = now - timedelta(seconds=RECENT_WINDOW_SECONDS)
    submitted = [_as_utc(r.submitted_at) for r in reports if r.submitted_at is not None]

    levels = [r.vibe_level for r in reports if r.vibe_level is not None]
    charges = [r.cover_charge for r in reports if r.cover_charge is not None]
    queues = [r.queue_length for r in reports if r.queue_length]
    genres = [r.music_genre.strip() for r in reports if r.music_genre and r.music_genre.strip()]

    return AggregateSnapshot(
        total_vibes=len(reports),
        vibes_last_hour=sum(1 for ts in submitted if ts >= recent_cutoff),
        average_vibe_level=round2(sum(levels) / len(levels)) if levels else None,
        average_queue_length=mean_queue_length(queues),
        average_cover_charge=round2(sum(charges) / len(charges)) if charges else None,
        most_common_music_genre=most_common(genres),
        last_vibe_report_at=max(submitted) if submitted else None,
    )
