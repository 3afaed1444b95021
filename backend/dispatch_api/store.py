"""
Django ORM implementation of dispatch.store.TaskStore.

compare_and_set_offer is one conditional UPDATE:
    UPDATE ... SET notified_runner_id = %s, notified_at = %s, excluded_runner_ids = %s
    WHERE id = %s AND status = 'pending' AND assigned_runner_id IS NULL
      AND notified_runner_id IS NOT DISTINCT FROM <what we read>
Zero rows updated means someone else got there first.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from dispatch.store import ConcurrentWriteConflict, TaskNotFound
from runners.models import Runner, build_history
from tasks.models import Task, TaskKind, TaskStatus, parse_commission_type, normalize_categories

from .models import CampusUser, DispatchTask

logger = logging.getLogger(__name__)


def task_categories(kind: str, category: Optional[str]) -> List[str]:
    if kind == DispatchTask.Kind.COMMISSION:
        return parse_commission_type(category)
    return normalize_categories([category])[:1]


def to_domain_task(row: DispatchTask) -> Task:
    poster = row.poster
    poster_location = None
    if poster.latitude is not None and poster.longitude is not None:
        poster_location = (poster.latitude, poster.longitude)

    return Task(
        id=str(row.pk),
        kind=TaskKind(row.kind),
        poster_id=row.poster_id,
        categories=tuple(task_categories(row.kind, row.category)),
        status=TaskStatus(row.status),
        assigned_runner_id=row.assigned_runner_id,
        notified_runner_id=row.notified_runner_id,
        notified_at=row.notified_at,
        excluded_runner_ids=frozenset(row.excluded_runner_ids or []),
        declined_runner_id=row.declined_runner_id,
        poster_location=poster_location,
    )


class DjangoTaskStore:
    """
    Reads tasks/runners from the ORM and persists offers with a conditional update.
    """

    def _pending(self):
        return DispatchTask.objects.select_related("poster").filter(
            status=DispatchTask.Status.PENDING, assigned_runner__isnull=True
        )

    def get_task(self, task_id: str) -> Task:
        try:
            row = DispatchTask.objects.select_related("poster").get(pk=task_id)
        except (DispatchTask.DoesNotExist, ValueError):
            raise TaskNotFound(f"Task {task_id} not found")
        return to_domain_task(row)

    def completed_history(self) -> Dict[str, list]:
        """runner id -> one category list per completed task."""
        history = defaultdict(list)
        completed = DispatchTask.objects.filter(
            status=DispatchTask.Status.COMPLETED, assigned_runner__isnull=False
        ).values_list("assigned_runner_id", "kind", "category")
        for runner_id, kind, category in completed:
            history[runner_id].append(task_categories(kind, category))
        return history

    def list_runners(self) -> List[Runner]:
        history = self.completed_history()
        runners = []
        for user in CampusUser.objects.filter(role=CampusUser.Roles.RUNNER):
            location = None
            if user.latitude is not None and user.longitude is not None:
                location = (user.latitude, user.longitude)
            runners.append(
                Runner(
                    id=user.id,
                    location=location,
                    is_available=user.is_available,
                    last_seen_at=user.last_seen_at,
                    location_updated_at=user.location_updated_at,
                    average_rating=user.average_rating,
                    completed_task_history=build_history(history.get(user.id, [])),
                )
            )
        return runners

    def list_offered_tasks(self, offered_before: datetime, limit: int) -> List[Task]:
        rows = (
            self._pending()
            .filter(notified_runner__isnull=False)
            .filter(Q(notified_at__lt=offered_before) | Q(notified_at__isnull=True))
            .order_by("notified_at", "pk")[:limit]
        )
        return [to_domain_task(row) for row in rows]

    def list_unassigned_pending_tasks(self, limit: int, after_id: Optional[str] = None) -> List[Task]:
        rows = self._pending().filter(notified_runner__isnull=True)
        if after_id is not None:
            rows = rows.filter(pk__gt=int(after_id))
        rows = rows.order_by("pk")[:limit]
        return [to_domain_task(row) for row in rows]

    def compare_and_set_offer(self, task_id: str, expected_runner_id: Optional[str], new_task: Task) -> Task:
        with transaction.atomic():
            rows = DispatchTask.objects.filter(
                pk=task_id, status=DispatchTask.Status.PENDING, assigned_runner__isnull=True
            )
            if expected_runner_id is None:
                rows = rows.filter(notified_runner__isnull=True)
            else:
                rows = rows.filter(notified_runner_id=expected_runner_id)

            current = rows.select_for_update().first()
            if current is None:
                raise ConcurrentWriteConflict(f"Task {task_id} changed since read (expected notified={expected_runner_id})")

            # exclusions only ever grow
            excluded = sorted(set(current.excluded_runner_ids or []) | set(new_task.excluded_runner_ids))

            updated = rows.update(
                notified_runner_id=new_task.notified_runner_id,
                notified_at=new_task.notified_at,
                excluded_runner_ids=excluded,
                updated_at=timezone.now(),
            )
            if updated == 0:
                raise ConcurrentWriteConflict(f"Task {task_id} changed during write")

        logger.debug("Task %s: offer persisted (notified=%s)", task_id, new_task.notified_runner_id)
        return self.get_task(task_id)
