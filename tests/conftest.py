import os
from datetime import datetime, timedelta, timezone

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "campus_backend.settings")
os.environ.setdefault("DATABASE_PATH", ":memory:")
django.setup()

from routing.geofence import offset_meters
from runners.models import Runner


@pytest.fixture
def poster_location():
    # Example: center of campus
    return (7.0656, 125.5969)


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_runner(poster_location, now):
    """
    Build a present, available runner `north_m` meters north of the poster.
    """
    def _make_runner(runner_id, north_m=100.0, rating=4.0, history=(), **overrides):
        lat, lon = offset_meters(poster_location, north_m, 0.0)
        fields = dict(
            is_available=True,
            last_seen_at=now - timedelta(seconds=10),
            location_updated_at=now - timedelta(seconds=10),
            average_rating=rating,
            history=history,
        )
        fields.update(overrides)
        return Runner.new(runner_id, lat, lon, **fields)

    return _make_runner


@pytest.fixture
def django_db():
    """
    Tables for the in-memory sqlite database. dispatch_api ships no
    migrations, so its tables come from syncdb.
    """
    from django.core.management import call_command
    from dispatch_api.models import CampusUser, DispatchTask

    call_command("migrate", run_syncdb=True, verbosity=0)
    yield
    DispatchTask.objects.all().delete()
    CampusUser.objects.all().delete()
