"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Accepts a pending Task and the current runner pool, runs
Candidate Filter -> Ranker -> Offer State Machine strictly in that order,
and returns a DispatchDecision describing the task's next offer state.

Dispatcher is pure: it never touches storage.
DispatchService wraps it with a TaskStore and persists every decision with a
single conditional write, so two callers racing on the same task cannot both win.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from routing.geofence import distance_meters
from runners.models import Runner
from tasks.models import Task

from .candidate_filter import DispatchError, DistanceFn, MissingReferenceLocation, build_candidates
from .policy import DispatchPolicy, default_dispatch_policy
from .scoring import select_top
from .state_machines.offer_state import (
    OfferState,
    OfferStateException,
    expire_offer,
    is_offered_to,
    offer_expired,
    offer_state,
    offer_to,
    rotate_offer,
)
from .store import ConcurrentWriteConflict, TaskNotFound, TaskStore

logger = logging.getLogger(__name__)


class DecisionKind(str, Enum):
    OFFERED_TO = "offered_to"
    NO_ELIGIBLE_CANDIDATE = "no_eligible_candidate"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DispatchDecision:
    """
    Result of one evaluation.

    kind: what happened
    task: the task snapshot after the decision (persist this)
    runner_id: the offeree for OFFERED_TO, or the current holder for UNCHANGED
    previous_runner_id: the runner whose offer timed out during this evaluation
    changed: whether task differs from the snapshot that was evaluated
    """
    kind: DecisionKind
    task: Task
    runner_id: Optional[str] = None
    previous_runner_id: Optional[str] = None
    changed: bool = False


class Dispatcher:
    """
    Decides which runner, for which task, right now, and when to rotate.
    """
    def __init__(self, policy: Optional[DispatchPolicy] = None, distance_fn: DistanceFn = distance_meters):
        self.policy = policy or default_dispatch_policy()
        self.distance_fn = distance_fn

    def evaluate(self, task: Task, runner_pool: Iterable[Runner], now: datetime) -> DispatchDecision:
        """
        Single entry point.

        - Terminal task                -> UNCHANGED
        - Live offer (< timeout)       -> UNCHANGED
        - No offer                     -> OFFERED_TO(top) or NO_ELIGIBLE_CANDIDATE
        - Expired offer                -> previous offeree excluded, then
                                          OFFERED_TO(next) or NO_ELIGIBLE_CANDIDATE (exhausted)
        """
        state = offer_state(task)

        if state == OfferState.TERMINAL:
            return DispatchDecision(DecisionKind.UNCHANGED, task)

        previous_runner_id = None
        base = task
        if state == OfferState.OFFERED:
            if not offer_expired(task, now, self.policy.offer_timeout_seconds):
                return DispatchDecision(DecisionKind.UNCHANGED, task, runner_id=task.notified_runner_id)

            previous_runner_id = task.notified_runner_id
            base = expire_offer(task)
            logger.info("Task %s: offer to %s timed out", task.id, previous_runner_id)

        try:
            candidates = build_candidates(base, runner_pool, now, self.policy, self.distance_fn)
        except MissingReferenceLocation:
            logger.warning("Task %s: poster %s has no usable location, cannot rank", task.id, task.poster_id)
            return self._no_candidate(task, base, previous_runner_id)

        top = select_top(candidates, self.policy)
        if top is None:
            return self._no_candidate(task, base, previous_runner_id)

        if previous_runner_id is not None:
            offered = rotate_offer(task, top.id, now)
        else:
            offered = offer_to(task, top.id, now)
        logger.info(
            "Task %s: offered to %s (score=%.4f, %.1fm)%s",
            task.id, top.id, top.final_score, top.distance,
            f", replacing {previous_runner_id}" if previous_runner_id else "",
        )
        return DispatchDecision(
            DecisionKind.OFFERED_TO,
            offered,
            runner_id=top.id,
            previous_runner_id=previous_runner_id,
            changed=True,
        )

    def is_visible_to(
        self,
        task: Task,
        runner_id: str,
        runner_pool: Iterable[Runner],
        now: datetime,
    ) -> Tuple[bool, DispatchDecision]:
        """
        Visibility query. Not a pure read: any due timeout rotation happens first,
        and the returned decision carries the (possibly new) task state.
        """
        decision = self.evaluate(task, runner_pool, now)
        visible = is_offered_to(decision.task, runner_id, now, self.policy.offer_timeout_seconds)
        return visible, decision

    def _no_candidate(self, task: Task, base: Task, previous_runner_id: Optional[str]) -> DispatchDecision:
        if previous_runner_id is not None:
            logger.info("Task %s: no runner left after %s timed out, exhausted", task.id, previous_runner_id)
        else:
            logger.debug("Task %s: no eligible runner", task.id)
        return DispatchDecision(
            DecisionKind.NO_ELIGIBLE_CANDIDATE,
            base,
            previous_runner_id=previous_runner_id,
            changed=base != task,
        )


class DispatchService:
    """
    Store-backed facade: the only thing a UI route or the sweeper talks to.
    """
    def __init__(self, store: TaskStore, dispatcher: Optional[Dispatcher] = None):
        self.store = store
        self.dispatcher = dispatcher or Dispatcher()

    def dispatch_task(self, task: Task, now: datetime) -> DispatchDecision:
        """
        Evaluate one task snapshot and persist the outcome.

        Raises ConcurrentWriteConflict when somebody else changed the task
        between our read and our write. The decision is then stale.
        """
        decision = self.dispatcher.evaluate(task, self.store.list_runners(), now)
        if not decision.changed:
            return decision

        persisted = self.store.compare_and_set_offer(task.id, task.notified_runner_id, decision.task)
        return DispatchDecision(
            decision.kind,
            persisted,
            runner_id=decision.runner_id,
            previous_runner_id=decision.previous_runner_id,
            changed=True,
        )

    def evaluate(self, task_id: str, requesting_runner_id: str, now: Optional[datetime] = None) -> Dict[str, bool]:
        """
        Caller-facing API: is this task currently offered to this runner?
        Every failure resolves to not visible.
        """
        now = now or datetime.now(timezone.utc)

        try:
            task = self.store.get_task(task_id)
        except TaskNotFound:
            logger.info("Visibility check for unknown task %s", task_id)
            return {"visible": False}

        try:
            decision = self.dispatch_task(task, now)
        except ConcurrentWriteConflict as e:
            # stale decision: drop it, the next cycle re-evaluates from fresh state
            logger.info("Discarding decision for task %s: %s", task_id, e)
            return {"visible": False}
        except (DispatchError, OfferStateException, ValueError) as e:
            logger.warning("Task %s: evaluation failed, not visible to %s: %s", task_id, requesting_runner_id, e)
            return {"visible": False}

        visible = is_offered_to(
            decision.task, requesting_runner_id, now, self.dispatcher.policy.offer_timeout_seconds
        )
        return {"visible": visible}
