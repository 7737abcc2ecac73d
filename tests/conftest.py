import pytest

from skillloop.db import ensure_user, init_db
from skillloop.progression import create_plan
from skillloop.providers import TextProvider


class ScriptedProvider(TextProvider):
    """Returns queued responses in order, or routes prompts through a handler."""

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.prompts = []

    def generate(self, prompt, max_tokens=2500):
        self.prompts.append(prompt)
        if self.handler is not None:
            return self.handler(prompt)
        if not self.responses:
            raise AssertionError("Unexpected provider call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_skillloop.db")
    return db_path


@pytest.fixture
def make_provider():
    return ScriptedProvider


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def plan(tmp_db):
    """A three-day plan for user u1, day 1 READY."""
    init_db(tmp_db)
    ensure_user(tmp_db, "u1")
    days = [
        {"missionTitle": "Components and props", "focus": "Build a first component", "difficulty": 2},
        {"missionTitle": "State with hooks", "focus": "useState basics", "difficulty": 2},
        {"missionTitle": "Effects", "focus": "useEffect and cleanup", "difficulty": 2},
    ]
    return create_plan(tmp_db, "u1", "React in 3 days", days)
