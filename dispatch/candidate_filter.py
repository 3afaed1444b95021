#Purpose: Hard eligibility filtering (rule gates).
#Builds the candidate set for one task before scoring.
#Typical responsibilities:
#online/available
#presence (heartbeat + location freshness)
#has a usable location on file (finite lat/lon)
#geofence: within radius of the poster
#exclusions: runners that timed out on this task, the commission's declined runner
#Output: "rule-qualified runners" with their ranking features (still not ranked).

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from routing.geofence import LatLon, distance_meters, is_valid_location, within_radius
from runners.models import Runner
from runners.presence import has_fresh_location, has_recent_heartbeat
from tasks.models import Task

from .affinity import affinity_score
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)

DistanceFn = Callable[[LatLon, LatLon], float]


class DispatchError(Exception):
    """Base class for dispatch failures that resolve to "not visible"."""
    pass


class MissingReferenceLocation(DispatchError):
    """Raised when the poster has no recorded location to rank against."""
    pass


def require_poster_location(task: Task) -> None:
    if not is_valid_location(task.poster_location):
        raise MissingReferenceLocation(
            f"Task {task.id} has no usable poster location ({task.poster_location})"
        )


@dataclass(frozen=True)
class Candidate:
    """
    A rule-qualified runner plus the features the ranker consumes.
    """
    id: str
    distance: float # meters from the poster
    rating: float # 0-5
    affinity: float # 0-1


def rejection_reason(
    runner: Runner,
    task: Task,
    now: datetime,
    policy: Optional[DispatchPolicy] = None,
    distance_fn: DistanceFn = distance_meters,
) -> Optional[str]:
    """
    Returns the name of the first rule the runner fails for this task,
    or None if the runner is eligible.
    """
    policy = policy or default_dispatch_policy()

    if not runner.is_available:
        return "unavailable"

    if not has_recent_heartbeat(runner, now, policy.heartbeat_window_seconds):
        return "stale_heartbeat"

    if not has_fresh_location(runner, now, policy.location_freshness_seconds):
        return "stale_location"

    if runner.location is None:
        return "no_location"

    # a corrupted row (nan/inf) only costs that runner, never the whole pool
    if not is_valid_location(runner.location):
        return "invalid_location"

    require_poster_location(task)

    if not within_radius(task.poster_location, runner.location, policy.radius_meters, distance_fn):
        return "out_of_radius"

    if runner.id in task.excluded_runner_ids:
        return "excluded"

    if runner.id == task.effective_declined_runner_id:
        return "declined"

    return None


def build_candidates(
    task: Task,
    runners: Iterable[Runner],
    now: datetime,
    policy: Optional[DispatchPolicy] = None,
    distance_fn: DistanceFn = distance_meters,
) -> List[Candidate]:
    """
    Filter the runner pool down to the runners eligible for this task
    and compute distance / rating / affinity for each survivor.

    Raises MissingReferenceLocation if the task has no poster location,
    or a non-finite one (there is nothing to measure distance against).
    """
    policy = policy or default_dispatch_policy()
    require_poster_location(task)

    candidates: List[Candidate] = []
    for runner in runners:
        reason = rejection_reason(runner, task, now, policy, distance_fn)
        if reason is not None:
            logger.debug("Task %s: runner %s rejected (%s)", task.id, runner.id, reason)
            continue

        candidates.append(
            Candidate(
                id=runner.id,
                distance=distance_fn(runner.location, task.poster_location),
                rating=runner.rating,
                # category-less tasks simply score 0 affinity for everyone
                affinity=affinity_score(
                    task.categories,
                    runner.completed_task_history,
                    policy.idf_shared_term_weight,
                ),
            )
        )

    logger.debug("Task %s: %d eligible runner(s)", task.id, len(candidates))
    return candidates
