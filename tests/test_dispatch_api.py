from datetime import timedelta

import pytest
from django.core.management import call_command
from rest_framework.test import APIClient, APIRequestFactory

from dispatch.dispatcher import DispatchService
from dispatch.store import InMemoryTaskStore
from dispatch_api import views
from dispatch_api.models import CampusUser, DispatchTask
from tasks.models import Task


@pytest.fixture
def service(poster_location, make_runner):
    store = InMemoryTaskStore()
    store.add_task(Task.errand("e1", "caller_1", "printing", poster_location))
    store.add_runner(make_runner("near", north_m=50))
    store.add_runner(make_runner("far", north_m=300))
    return DispatchService(store)


@pytest.fixture
def visibility(monkeypatch, service):
    monkeypatch.setattr(views, "get_dispatch_service", lambda: service)
    view = views.TaskDispatchViewSet.as_view({"get": "visibility"})
    factory = APIRequestFactory()

    def _call(pk, **params):
        request = factory.get(f"/api/v1/tasks/{pk}/visibility/", params)
        return view(request, pk=pk)

    return _call


def test_only_the_offered_runner_sees_the_task(visibility, now):
    at = now.isoformat()

    response = visibility("e1", runner_id="near", at=at)
    assert response.status_code == 200
    assert response.data == {"task_id": "e1", "runner_id": "near", "visible": True}

    assert visibility("e1", runner_id="far", at=at).data["visible"] is False


def test_visibility_after_timeout(visibility, now):
    visibility("e1", runner_id="near", at=now.isoformat())
    later = (now + timedelta(seconds=61)).isoformat()

    assert visibility("e1", runner_id="near", at=later).data["visible"] is False
    assert visibility("e1", runner_id="far", at=later).data["visible"] is True


def test_missing_runner_id_is_a_bad_request(visibility):
    response = visibility("e1")
    assert response.status_code == 400
    assert "runner_id" in response.data


def test_unknown_task_is_not_visible(visibility, now):
    response = visibility("nope", runner_id="near", at=now.isoformat())
    assert response.status_code == 200
    assert response.data["visible"] is False


def test_routed_endpoint_against_the_database(django_db, poster_location, now):
    caller = CampusUser.objects.create(
        id="caller_1", role=CampusUser.Roles.CALLER, latitude=poster_location[0], longitude=poster_location[1]
    )
    CampusUser.objects.create(
        id="runner_1", role=CampusUser.Roles.RUNNER, latitude=poster_location[0], longitude=poster_location[1],
        is_available=True, last_seen_at=now, location_updated_at=now, average_rating=4.5,
    )
    row = DispatchTask.objects.create(category="printing", poster=caller)

    response = APIClient().get(
        f"/api/v1/tasks/{row.pk}/visibility/", {"runner_id": "runner_1", "at": now.isoformat()}
    )
    assert response.status_code == 200
    assert response.json() == {"task_id": str(row.pk), "runner_id": "runner_1", "visible": True}


def test_sweeper_command_runs_one_cycle(django_db, capsys):
    call_command("run_dispatch_sweeper", "--once")
    assert "0 task(s)" in capsys.readouterr().out


def test_corrupted_runner_row_still_answers(django_db, poster_location, now):
    caller = CampusUser.objects.create(
        id="caller_1", role=CampusUser.Roles.CALLER, latitude=poster_location[0], longitude=poster_location[1]
    )
    for runner_id, lat in (("broken", float("inf")), ("runner_1", poster_location[0])):
        CampusUser.objects.create(
            id=runner_id, role=CampusUser.Roles.RUNNER, latitude=lat, longitude=poster_location[1],
            is_available=True, last_seen_at=now, location_updated_at=now, average_rating=4.5,
        )
    row = DispatchTask.objects.create(category="printing", poster=caller)

    client = APIClient()
    url = f"/api/v1/tasks/{row.pk}/visibility/"
    for runner_id, visible in (("runner_1", True), ("broken", False)):
        response = client.get(url, {"runner_id": runner_id, "at": now.isoformat()})
        assert response.status_code == 200
        assert response.json()["visible"] is visible
