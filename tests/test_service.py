from datetime import timedelta

import pytest

from dispatch.dispatcher import DecisionKind, Dispatcher, DispatchService
from dispatch.store import ConcurrentWriteConflict, InMemoryTaskStore
from runners.models import Runner
from tasks.models import Task


class StaleReadStore(InMemoryTaskStore):
    """Serves a fixed, outdated snapshot of every task, like a slow replica."""

    def __init__(self, stale_tasks):
        super().__init__()
        self.stale_tasks = stale_tasks

    def get_task(self, task_id):
        return self.stale_tasks[task_id]


@pytest.fixture
def errand(poster_location):
    return Task.errand("e1", "caller_1", "printing", poster_location)


@pytest.fixture
def store(errand, make_runner):
    store = InMemoryTaskStore()
    store.add_task(errand)
    store.add_runner(make_runner("near", north_m=50))
    store.add_runner(make_runner("far", north_m=300))
    return store


def test_first_check_offers_and_persists(store, now):
    service = DispatchService(store)
    assert service.evaluate("e1", "near", now) == {"visible": True}
    assert service.evaluate("e1", "far", now) == {"visible": False}

    task = store.get_task("e1")
    assert task.notified_runner_id == "near"
    assert task.notified_at == now


def test_repeated_checks_are_idempotent(store, now):
    service = DispatchService(store)
    service.evaluate("e1", "near", now)
    before = store.get_task("e1")

    for seconds in (1, 15, 59):
        service.evaluate("e1", "far", now + timedelta(seconds=seconds))
    assert store.get_task("e1") == before


def test_timeout_rotation_is_persisted(store, now):
    service = DispatchService(store)
    service.evaluate("e1", "near", now)

    later = now + timedelta(seconds=60)
    assert service.evaluate("e1", "near", later) == {"visible": False}
    assert service.evaluate("e1", "far", later) == {"visible": True}

    task = store.get_task("e1")
    assert task.notified_runner_id == "far"
    assert task.excluded_runner_ids == frozenset({"near"})


def test_unknown_task_is_not_visible(store, now):
    assert DispatchService(store).evaluate("nope", "near", now) == {"visible": False}


def test_scenario_c_no_runners(errand, now):
    store = InMemoryTaskStore()
    store.add_task(errand)

    assert DispatchService(store).evaluate("e1", "anyone", now) == {"visible": False}
    assert store.get_task("e1") == errand


def test_racing_writers_only_one_wins(store, errand, now):
    service = DispatchService(store)
    first = service.dispatch_task(errand, now)
    assert first.kind == DecisionKind.OFFERED_TO

    # second caller evaluated the same unassigned snapshot
    with pytest.raises(ConcurrentWriteConflict):
        service.dispatch_task(errand, now)
    assert store.get_task("e1").notified_runner_id == "near"


def test_conflict_resolves_to_not_visible(errand, make_runner, now):
    store = StaleReadStore({"e1": errand})
    store.add_task(errand)
    store.add_runner(make_runner("near", north_m=50))
    store.accept_task("e1", "someone_else")

    assert DispatchService(store).evaluate("e1", "near", now) == {"visible": False}


def test_corrupted_runner_row_does_not_block_the_task(store, now):
    store.add_runner(Runner.new("bad", float("nan"), 125.0, last_seen_at=now, location_updated_at=now))
    service = DispatchService(store)

    assert service.evaluate("e1", "near", now) == {"visible": True}
    assert service.evaluate("e1", "bad", now) == {"visible": False}


def test_bad_poster_location_is_not_visible(make_runner, now):
    store = InMemoryTaskStore()
    store.add_task(Task.errand("e1", "caller_1", "printing", (float("nan"), 125.5969)))
    store.add_runner(make_runner("near", north_m=50))

    assert DispatchService(store).evaluate("e1", "near", now) == {"visible": False}
    assert store.get_task("e1").notified_runner_id is None


def test_evaluation_errors_resolve_to_not_visible(store, now):
    def broken_distance(a, b):
        raise ValueError("bad coordinates")

    service = DispatchService(store, Dispatcher(distance_fn=broken_distance))
    assert service.evaluate("e1", "near", now) == {"visible": False}
