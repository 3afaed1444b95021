"""
Purpose: The centralised "heartbeat" for offer rotation.
What it does:
Simulates / runs a background cron loop (every 10-30 seconds):
- finds offers older than the timeout (oldest first, bounded per cycle),
- re-evaluates each through DispatchService (rotate or exhaust),
- optionally offers tasks that are still waiting for a runner,
and reports what it did. Being the single writer for rotations, it removes
the race of every client re-deriving the same decision.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .dispatcher import DecisionKind, DispatchService
from .policy import DispatchPolicy
from .store import ConcurrentWriteConflict

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    total: int = 0
    offered: int = 0 # first offers for waiting tasks
    reassigned: int = 0 # timed-out offer moved to the next runner
    cleared: int = 0 # timed-out offer with nobody left (exhausted)
    conflicts: int = 0 # someone else changed the task first
    errors: int = 0
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TimeoutSweeper:
    def __init__(
        self,
        service: DispatchService,
        policy: Optional[DispatchPolicy] = None,
        assign_waiting: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.service = service
        self.policy = policy or service.dispatcher.policy
        self.assign_waiting = assign_waiting
        self.clock = clock
        # id of the last waiting task swept; the next cycle continues after it
        self._waiting_cursor: Optional[str] = None

    def run_cycle(self, now: Optional[datetime] = None) -> SweepStats:
        """
        1. Rotate every offer that is at least offer_timeout_seconds old.
        2. If assign_waiting, try to offer tasks with no current offer
           (new tasks, or exhausted ones whose runner pool may have changed).
           Waiting tasks are paged across cycles, so tasks no runner can take
           never hold the batch for newer ones.
        """
        now = now or self.clock()
        stats = SweepStats(now=now)

        # notified_at <= now - timeout  <=>  notified_at < now - timeout + epsilon
        cutoff = now - timedelta(seconds=self.policy.offer_timeout_seconds) + timedelta(microseconds=1)
        overdue = self.service.store.list_offered_tasks(cutoff, self.policy.sweep_batch_limit)

        waiting = []
        if self.assign_waiting:
            remaining = self.policy.sweep_batch_limit - len(overdue)
            if remaining > 0:
                waiting = self.service.store.list_unassigned_pending_tasks(remaining, after_id=self._waiting_cursor)
                # a short page means we reached the end: start from the top next cycle
                self._waiting_cursor = waiting[-1].id if len(waiting) == remaining else None

        for task in list(overdue) + list(waiting):
            stats.total += 1
            try:
                decision = self.service.dispatch_task(task, now)
            except ConcurrentWriteConflict:
                logger.info("Task %s already processed by another writer, skipping", task.id)
                stats.conflicts += 1
                continue
            except Exception:
                # one broken task must not stall the rest of the sweep
                logger.exception("Task %s: sweep failed", task.id)
                stats.errors += 1
                continue

            if decision.kind == DecisionKind.OFFERED_TO:
                if decision.previous_runner_id is not None:
                    stats.reassigned += 1
                else:
                    stats.offered += 1
            elif decision.previous_runner_id is not None:
                stats.cleared += 1

        if stats.total:
            logger.info(
                "Sweep: %d task(s), %d offered, %d reassigned, %d cleared, %d conflicts, %d errors",
                stats.total, stats.offered, stats.reassigned, stats.cleared, stats.conflicts, stats.errors,
            )
        return stats

    def run_forever(self, max_cycles: Optional[int] = None, sleep: Callable[[float], None] = time.sleep) -> None:
        """
        Blocking scheduler loop. In production this is the body of the
        single backend worker that owns offer rotation.
        """
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            sleep(self.policy.sweep_interval_seconds)
