from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from tasks.models import Task


class OfferStateException(Exception):
    """Raised when an invalid offer transition is attempted."""
    pass


class OfferState(str, Enum):
    """
    Conceptual per-task dispatch state. Derived from the task fields,
    never stored on its own.
    """
    UNASSIGNED = "unassigned"
    OFFERED = "offered"
    EXHAUSTED = "exhausted"
    TERMINAL = "terminal"


def offer_state(task: Task) -> OfferState:
    """
    Reads the state off the task snapshot.
    EXHAUSTED behaves exactly like UNASSIGNED; it only tells you that
    somebody has already timed out on this task.
    """
    if task.is_terminal:
        return OfferState.TERMINAL
    if task.notified_runner_id is not None:
        return OfferState.OFFERED
    if task.excluded_runner_ids:
        return OfferState.EXHAUSTED
    return OfferState.UNASSIGNED


def offer_expired(task: Task, now: datetime, timeout_seconds: int = 60) -> bool:
    """
    True when the current offer is at least timeout_seconds old.
    A task without an offer has nothing to expire.
    """
    if task.notified_runner_id is None:
        return False
    if task.notified_at is None:
        # An offer without a timestamp can never be proven fresh
        return True
    return now - task.notified_at >= timedelta(seconds=timeout_seconds)


def is_offered_to(task: Task, runner_id: str, now: datetime, timeout_seconds: int = 60) -> bool:
    """Pure read: is runner_id holding a live offer on this task."""
    return (
        offer_state(task) == OfferState.OFFERED
        and task.notified_runner_id == runner_id
        and not offer_expired(task, now, timeout_seconds)
    )


def offer_to(task: Task, runner_id: str, now: datetime) -> Task:
    """
    UNASSIGNED/EXHAUSTED -> OFFERED(runner_id, now)
    or OFFERED(r, t) -> OFFERED(runner_id, now) after expire_offer.
    """
    if task.is_terminal:
        raise OfferStateException(f"Cannot offer terminal task {task.id}")

    if runner_id in task.excluded_runner_ids:
        raise OfferStateException(f"Runner {runner_id} is excluded from task {task.id}")

    if task.notified_runner_id is not None:
        raise OfferStateException(
            f"Task {task.id} is still offered to {task.notified_runner_id}; expire it first"
        )

    return replace(task, notified_runner_id=runner_id, notified_at=now)


def expire_offer(task: Task) -> Task:
    """
    OFFERED(r, t) -> EXHAUSTED: r joins the exclusion set (for good),
    and the notified fields are cleared.
    """
    if task.notified_runner_id is None:
        raise OfferStateException(f"Task {task.id} has no offer to expire")

    return replace(
        task,
        notified_runner_id=None,
        notified_at=None,
        excluded_runner_ids=task.excluded_runner_ids | {task.notified_runner_id},
    )


def rotate_offer(task: Task, next_runner_id: Optional[str], now: datetime) -> Task:
    """
    Timeout rotation in one step: expire the current offer and hand the task
    to next_runner_id, or leave it EXHAUSTED when there is nobody left.
    """
    expired = expire_offer(task)
    if next_runner_id is None:
        return expired
    return offer_to(expired, next_runner_id, now)
