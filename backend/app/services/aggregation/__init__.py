"""
Venue vibe aggregates, computed on read from visible reports (see aggregate).
"""
from app.services.aggregation.aggregate import EMPTY_SNAPSHOT, AggregateSnapshot, aggregate

__all__ = ["AggregateSnapshot", "EMPTY_SNAPSHOT", "aggregate"]
