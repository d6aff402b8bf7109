"""
Shared fixtures: temporary checklist database, in-memory collaborators and a
controllable clock.
"""
import os
import shutil
import tempfile
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional

import pytest

from dailyops.cache import TTLCache
from dailyops.database import ChecklistDatabase
from dailyops.services import ChecklistQueryService, CompletionTracker, DayGate, InstanceGenerator
from dailyops.storage import StaticActorDirectory, TemplateSource

SITE = "hotel-1"
DAY = "2024-05-01"
NEXT_DAY = "2024-05-02"


def make_template(template_id: str, title: str, service: str, order: int, **extra) -> Dict[str, Any]:
    template = {
        "id": template_id,
        "title": title,
        "description": f"{title} description",
        "service": service,
        "order": order,
        "sites": [SITE],
        "active": True,
    }
    template.update(extra)
    return template


DEFAULT_TEMPLATES = [
    make_template("tpl-rooms", "Check rooms", "Housekeeping", 1),
    make_template("tpl-desk", "Open front desk", "Reception", 2),
    make_template("tpl-linen", "Count linen", "Housekeeping", 3, image_url="https://example.com/linen.png"),
]


class StubTemplateSource(TemplateSource):
    """Template source backed by a list; set ``error`` to make it fail."""

    def __init__(self, templates: Optional[List[Dict[str, Any]]] = None):
        self.templates = list(templates if templates is not None else DEFAULT_TEMPLATES)
        self.error: Optional[Exception] = None
        self.calls = 0

    def get_active_templates(self, site_id: str) -> List[Dict[str, Any]]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        eligible = [t for t in self.templates if site_id in t.get("sites", []) and t.get("active", True)]
        return sorted(eligible, key=lambda t: (t["order"], t["id"]))


class StepClock:
    """Returns a fixed instant that moves forward one second per call."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 5, 1, 8, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


class ManualTimer:
    """Monotonic-style clock for TTLCache that only moves when told to."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    temp_dir = tempfile.mkdtemp()
    db_path = os.path.join(temp_dir, "test.db")
    db = ChecklistDatabase(db_path)
    yield db, db_path
    shutil.rmtree(temp_dir)


@pytest.fixture
def db(temp_db):
    return temp_db[0]


@pytest.fixture
def template_source():
    return StubTemplateSource()


@pytest.fixture
def actor_directory():
    return StaticActorDirectory({"u-1": "Alice Martin", "admin-1": "Bob Admin"})


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def cache(timer):
    return TTLCache(ttl_seconds=60.0, clock=timer)


@pytest.fixture
def generator(db, template_source, cache, clock):
    return InstanceGenerator(db, template_source, cache=cache, clock=clock)


@pytest.fixture
def tracker(db, actor_directory, cache, clock):
    return CompletionTracker(db, actor_directory, cache=cache, clock=clock)


@pytest.fixture
def gate(db, generator, cache, clock):
    return DayGate(db, generator, cache=cache, clock=clock)


@pytest.fixture
def query(db, gate, cache):
    return ChecklistQueryService(db, gate, cache=cache)


@pytest.fixture
def generated_day(generator):
    """Generate DAY for SITE and return the generation result."""
    return generator.generate(DAY, SITE)
