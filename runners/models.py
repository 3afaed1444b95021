"""
Purpose: Core data models for the runners domain.
What it does:
Defines the structure of a Runner (availability, presence timestamps,
rating and completed-task history) without relying on Django ORM constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, Optional, Tuple

from tasks.models import normalize_categories

LatLon = Tuple[float, float]

# One entry per completed task; each entry is that task's category set.
CategoryHistory = Tuple[FrozenSet[str], ...]


@dataclass(frozen=True)
class Runner:
    """
    A purely stateless representation of a Runner at a specific point in time.
    The dispatch engine only ever reads these.
    """
    id: str
    location: Optional[LatLon]
    is_available: bool
    last_seen_at: Optional[datetime] = None
    location_updated_at: Optional[datetime] = None
    average_rating: Optional[float] = None

    # NOT a flat bag of labels: a commission may carry several categories
    # and must still count once per task for frequency purposes.
    completed_task_history: CategoryHistory = field(default_factory=tuple)

    @classmethod
    def new(
        cls,
        runner_id: str,
        lat: Optional[float],
        lon: Optional[float],
        is_available: bool = True,
        last_seen_at: datetime | None = None,
        location_updated_at: datetime | None = None,
        average_rating: float | None = None,
        history: Iterable[Iterable[str]] = (),
    ) -> Runner:
        location = (lat, lon) if lat is not None and lon is not None else None
        return cls(
            id=runner_id,
            location=location,
            is_available=is_available,
            last_seen_at=last_seen_at,
            location_updated_at=location_updated_at,
            average_rating=average_rating,
            completed_task_history=build_history(history),
        )

    @property
    def rating(self) -> float:
        """average_rating with a missing rating treated as 0."""
        return float(self.average_rating or 0.0)

    @property
    def completed_task_count(self) -> int:
        return len(self.completed_task_history)


def build_history(history: Iterable[Iterable[str]]) -> CategoryHistory:
    """
    Normalise raw per-task category lists into the history shape.
    A completed task with no usable category still counts towards N.
    """
    return tuple(frozenset(normalize_categories(task_categories)) for task_categories in history)
