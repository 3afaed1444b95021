from datetime import timedelta

import pytest

from dispatch.candidate_filter import MissingReferenceLocation, build_candidates, rejection_reason
from runners.models import Runner
from tasks.models import Task


@pytest.fixture
def errand(poster_location):
    return Task.errand("e1", "caller_1", "Printing", poster_location)


def test_present_nearby_runner_is_a_candidate(errand, make_runner, now):
    runner = make_runner("r1", north_m=120, rating=4.5, history=[["printing"]])
    candidates = build_candidates(errand, [runner], now)

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.id == "r1"
    assert candidate.distance == pytest.approx(120, abs=0.5)
    assert candidate.rating == 4.5
    assert candidate.affinity == pytest.approx(1.0)


def test_each_rule_rejects(errand, make_runner, now):
    cases = {
        "unavailable": make_runner("r1", is_available=False),
        "stale_heartbeat": make_runner("r2", last_seen_at=now - timedelta(seconds=121)),
        "stale_location": make_runner("r3", location_updated_at=now - timedelta(seconds=91)),
        "out_of_radius": make_runner("r4", north_m=520),
        "no_location": Runner.new("r5", None, None, last_seen_at=now),
    }
    for expected, runner in cases.items():
        assert rejection_reason(runner, errand, now) == expected
    assert build_candidates(errand, list(cases.values()), now) == []


def test_missing_heartbeat_is_not_present(errand, make_runner, now):
    runner = make_runner("r1", last_seen_at=None)
    assert rejection_reason(runner, errand, now) == "stale_heartbeat"


def test_unknown_location_timestamp_falls_back_to_location_on_file(errand, make_runner, now):
    runner = make_runner("r1", location_updated_at=None)
    assert rejection_reason(runner, errand, now) is None


def test_presence_windows_are_inclusive(errand, make_runner, now):
    runner = make_runner(
        "r1",
        last_seen_at=now - timedelta(seconds=120),
        location_updated_at=now - timedelta(seconds=90),
    )
    assert rejection_reason(runner, errand, now) is None


def test_excluded_runner_is_filtered(poster_location, make_runner, now):
    task = Task.errand("e1", "caller_1", "printing", poster_location, excluded_runner_ids=frozenset({"r1"}))
    candidates = build_candidates(task, [make_runner("r1"), make_runner("r2")], now)
    assert [c.id for c in candidates] == ["r2"]


def test_declined_runner_is_filtered_for_commissions(poster_location, make_runner, now):
    task = Task.commission("c1", "caller_1", "printing, delivery", poster_location, declined_runner_id="r1")
    assert rejection_reason(make_runner("r1"), task, now) == "declined"


def test_declined_runner_is_ignored_for_errands(poster_location, make_runner, now):
    task = Task.errand("e1", "caller_1", "printing", poster_location, declined_runner_id="r1")
    assert rejection_reason(make_runner("r1"), task, now) is None


def test_scenario_d_radius_boundary(errand, make_runner, now):
    runner = make_runner("r1")

    def exactly_500(a, b):
        return 500.0

    def just_past_500(a, b):
        return 500.01

    assert [c.id for c in build_candidates(errand, [runner], now, distance_fn=exactly_500)] == ["r1"]
    assert build_candidates(errand, [runner], now, distance_fn=just_past_500) == []


def test_missing_poster_location_raises(make_runner, now):
    task = Task.errand("e1", "caller_1", "printing", poster_location=None)
    with pytest.raises(MissingReferenceLocation):
        build_candidates(task, [make_runner("r1")], now)


def test_category_less_task_gives_zero_affinity(poster_location, make_runner, now):
    task = Task.errand("e1", "caller_1", "   ", poster_location)
    assert task.categories == ()
    candidates = build_candidates(task, [make_runner("r1", history=[["printing"]])], now)
    assert candidates[0].affinity == 0.0


def test_runner_with_corrupted_coordinates_is_skipped(errand, make_runner, now):
    good = make_runner("good", north_m=50)
    bad_lat = Runner.new("bad_lat", float("nan"), 125.0, last_seen_at=now, location_updated_at=now)
    bad_lon = Runner.new("bad_lon", 7.0656, float("inf"), last_seen_at=now, location_updated_at=now)

    assert rejection_reason(bad_lat, errand, now) == "invalid_location"
    assert rejection_reason(bad_lon, errand, now) == "invalid_location"
    assert [c.id for c in build_candidates(errand, [bad_lat, good, bad_lon], now)] == ["good"]


@pytest.mark.parametrize("bad_location", [(float("nan"), 125.5969), (7.0656, float("-inf"))])
def test_non_finite_poster_location_raises(bad_location, make_runner, now):
    task = Task.errand("e1", "caller_1", "printing", bad_location)
    with pytest.raises(MissingReferenceLocation):
        build_candidates(task, [make_runner("r1")], now)
