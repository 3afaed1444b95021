"""
Purpose: Task/Runner store contract + an in-memory implementation.
What it does:
- Read access to Task and Runner snapshots.
- ONE write operation: compare_and_set_offer, an atomic conditional write of the
  three fields the dispatch engine owns (notified_runner_id, notified_at,
  excluded_runner_ids). The write only lands if the task is still pending,
  still unaccepted, and still offered to the runner the caller last read.

Rule: the store never decides anything; it only refuses stale writes.
The Django ORM version of this contract lives in backend/dispatch_api/store.py.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Protocol

from runners.models import Runner
from tasks.models import Task, TaskStatus

from .candidate_filter import DispatchError


class TaskNotFound(DispatchError):
    """Raised when a task id is unknown to the store."""
    pass


class ConcurrentWriteConflict(DispatchError):
    """
    Raised when a conditional offer write finds the task changed since it was read.
    The decision that produced the write is stale and must be dropped, not retried.
    """
    pass


class TaskStore(Protocol):
    def get_task(self, task_id: str) -> Task: ...

    def list_runners(self) -> List[Runner]: ...

    def list_offered_tasks(self, offered_before: datetime, limit: int) -> List[Task]: ...

    def list_unassigned_pending_tasks(self, limit: int, after_id: Optional[str] = None) -> List[Task]: ...

    def compare_and_set_offer(self, task_id: str, expected_runner_id: Optional[str], new_task: Task) -> Task: ...


def offer_fields_precondition_holds(current: Task, expected_runner_id: Optional[str]) -> bool:
    return (
        current.status == TaskStatus.PENDING
        and current.assigned_runner_id is None
        and current.notified_runner_id == expected_runner_id
    )


@dataclass
class InMemoryTaskStore:
    """
    Thread-safe in-memory store used by tests, the simulation script and
    single-process deployments. Each task has its own lock so evaluations of
    different tasks never wait on each other.
    """
    _tasks: Dict[str, Task] = field(default_factory=dict)
    _runners: Dict[str, Runner] = field(default_factory=dict)
    _locks: Dict[str, threading.Lock] = field(default_factory=dict)
    _guard: threading.Lock = field(default_factory=threading.Lock)

    # --- Seeding / external events (outside the engine's control) ---

    def add_task(self, task: Task) -> None:
        with self.lock(task.id):
            self._tasks[task.id] = task

    def add_runner(self, runner: Runner) -> None:
        with self._guard:
            self._runners[runner.id] = runner

    def accept_task(self, task_id: str, runner_id: str) -> Task:
        """A runner accepted: the task leaves the engine's purview."""
        with self.lock(task_id):
            task = self._get(task_id)
            task = replace(task, assigned_runner_id=runner_id, status=TaskStatus.IN_PROGRESS)
            self._tasks[task_id] = task
            return task

    def cancel_task(self, task_id: str) -> Task:
        with self.lock(task_id):
            task = self._get(task_id).with_status(TaskStatus.CANCELLED)
            self._tasks[task_id] = task
            return task

    # --- TaskStore contract ---

    def get_task(self, task_id: str) -> Task:
        with self.lock(task_id):
            return self._get(task_id)

    def list_runners(self) -> List[Runner]:
        with self._guard:
            return list(self._runners.values())

    def list_offered_tasks(self, offered_before: datetime, limit: int) -> List[Task]:
        """Pending, unaccepted tasks whose offer was made before offered_before, oldest first."""
        with self._guard:
            tasks = list(self._tasks.values())
        overdue = [
            t for t in tasks
            if not t.is_terminal
            and t.notified_runner_id is not None
            and (t.notified_at is None or t.notified_at < offered_before)
        ]
        overdue.sort(key=lambda t: (t.notified_at is not None, t.notified_at or offered_before))
        return overdue[:limit]

    def list_unassigned_pending_tasks(self, limit: int, after_id: Optional[str] = None) -> List[Task]:
        """
        Pending tasks with no current offer, in id order, starting after after_id.
        Paging with after_id lets the sweeper move past tasks nobody can take.
        """
        with self._guard:
            tasks = list(self._tasks.values())
        waiting = sorted(
            (t for t in tasks if not t.is_terminal and t.notified_runner_id is None),
            key=lambda t: t.id,
        )
        if after_id is not None:
            waiting = [t for t in waiting if t.id > after_id]
        return waiting[:limit]

    def compare_and_set_offer(self, task_id: str, expected_runner_id: Optional[str], new_task: Task) -> Task:
        with self.lock(task_id):
            current = self._get(task_id)
            if not offer_fields_precondition_holds(current, expected_runner_id):
                raise ConcurrentWriteConflict(
                    f"Task {task_id} changed since read "
                    f"(expected notified={expected_runner_id}, found notified={current.notified_runner_id}, "
                    f"status={current.status.value}, assigned={current.assigned_runner_id})"
                )

            # Only the engine-owned fields are written; exclusions only ever grow.
            updated = replace(
                current,
                notified_runner_id=new_task.notified_runner_id,
                notified_at=new_task.notified_at,
                excluded_runner_ids=current.excluded_runner_ids | new_task.excluded_runner_ids,
            )
            self._tasks[task_id] = updated
            return updated

    # --- Internal ---

    @contextmanager
    def lock(self, task_id: str) -> Iterator[None]:
        with self._guard:
            task_lock = self._locks.setdefault(task_id, threading.Lock())
        with task_lock:
            yield

    def _get(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task
