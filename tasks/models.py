"""
Purpose: Domain models for the Tasks capability.
What it does:
- Defines the one Task shape shared by errands and commissions
  (a tagged variant: `kind` is the only discriminator).
- Defines enums:
  - TaskKind = ERRAND | COMMISSION
  - TaskStatus = PENDING | IN_PROGRESS | COMPLETED | CANCELLED | DELIVERED
- Normalises category labels (lowercase, trimmed, blanks dropped).

Rule: No ranking, no dispatch decisions. Models only.
The dispatch engine is the only writer of the notified_* / excluded_* fields.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

LatLon = Tuple[float, float]


class TaskKind(str, Enum):
    ERRAND = "errand"
    COMMISSION = "commission"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELIVERED = "delivered"


def normalize_categories(labels: Optional[Iterable[Optional[str]]]) -> List[str]:
    """
    Lowercase + trim every label, keep order and duplicates,
    drop anything that is empty or whitespace after normalisation.
    """
    if not labels:
        return []
    normalized = []
    for label in labels:
        if label is None:
            continue
        cleaned = str(label).strip().lower()
        if cleaned:
            normalized.append(cleaned)
    return normalized


def parse_commission_type(commission_type: Optional[str]) -> List[str]:
    """Commission categories are stored as one comma separated string."""
    if not commission_type:
        return []
    return normalize_categories(commission_type.split(","))


@dataclass(frozen=True)
class Task:
    """
    Snapshot of an errand or commission as the dispatch engine sees it.

    Frozen on purpose: a dispatch decision produces a *new* Task value
    (see dispatch/state_machines/offer_state.py) that the store then
    persists with a conditional write.
    """

    id: str
    kind: TaskKind
    poster_id: str
    categories: Tuple[str, ...] = ()
    status: TaskStatus = TaskStatus.PENDING

    # Set once a runner accepts; distinct from "notified"
    assigned_runner_id: Optional[str] = None

    # Offer state owned by the dispatch engine
    notified_runner_id: Optional[str] = None
    notified_at: Optional[datetime] = None
    excluded_runner_ids: FrozenSet[str] = field(default_factory=frozenset)

    # Commission-only: a runner the poster explicitly rejected
    declined_runner_id: Optional[str] = None

    # Looked up via poster_id by the store
    poster_location: Optional[LatLon] = None

    @classmethod
    def errand(
        cls,
        task_id: str,
        poster_id: str,
        category: Optional[str],
        poster_location: Optional[LatLon] = None,
        **kwargs,
    ) -> Task:
        # An errand carries exactly one category (or none when blank)
        return cls(
            id=task_id,
            kind=TaskKind.ERRAND,
            poster_id=poster_id,
            categories=tuple(normalize_categories([category])[:1]),
            poster_location=poster_location,
            **kwargs,
        )

    @classmethod
    def commission(
        cls,
        task_id: str,
        poster_id: str,
        commission_type: Optional[str],
        poster_location: Optional[LatLon] = None,
        **kwargs,
    ) -> Task:
        return cls(
            id=task_id,
            kind=TaskKind.COMMISSION,
            poster_id=poster_id,
            categories=tuple(parse_commission_type(commission_type)),
            poster_location=poster_location,
            **kwargs,
        )

    @property
    def is_terminal(self) -> bool:
        """The engine stops acting on a task once it is accepted or leaves PENDING."""
        return self.assigned_runner_id is not None or self.status != TaskStatus.PENDING

    @property
    def effective_declined_runner_id(self) -> Optional[str]:
        # declined_runner_id only means something for commissions
        if self.kind == TaskKind.COMMISSION:
            return self.declined_runner_id
        return None

    def with_status(self, status: TaskStatus | str) -> Task:
        if isinstance(status, str):
            status = TaskStatus(status)
        return replace(self, status=status)
