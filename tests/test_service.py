"""End-to-end tests for the curriculum service with scripted providers."""
import json
import re
from datetime import date

import pytest

from skillloop.db import ensure_user, get_connection, init_db
from skillloop.errors import InvalidArgument, NotFound, ProviderFailure
from skillloop.models import ArtifactType, DayStatus
from skillloop.progression import get_day
from skillloop.service import CurriculumService, get_user

STEPS = {"steps": [f"Step {i}" for i in range(1, 6)], "keywords": ["react hooks"]}
QUIZ = {"quiz": [
    {"q": "Which hook stores state?", "type": "mcq", "choices": ["useState", "useEffect", "useMemo"],
     "answer": "useState"},
    {"q": "Which hook runs effects?", "type": "mcq", "choices": ["useEffect", "useRef", "useContext"],
     "answer": "useEffect"},
    {"q": "What does JSX compile to?", "type": "short", "answer": "function calls"},
]}
RIGHT = ["useState", "useEffect", "function calls"]
WRONG = ["useMemo", "useRef", "templates"]


class FakeFetcher:
    def __init__(self):
        self.calls = []

    def assemble(self, topic, keywords, language="en"):
        self.calls.append((topic, tuple(keywords), language))
        return [
            {"type": "youtube", "title": "Hooks explained", "url": "https://www.youtube.com/watch?v=abc"},
            {"type": "wikipedia", "title": "Wikipedia: React", "url": "https://en.wikipedia.org/wiki/React"},
        ]


def _handler(feedback="Nice work on hooks."):
    def handle(prompt):
        if "curriculum designer" in prompt:
            start, end = map(int, re.search(r"days (\d+) to (\d+)", prompt).groups())
            return json.dumps([
                {"dayNumber": n, "missionTitle": f"Mission {n}", "focus": f"Focus {n}"} for n in range(start, end + 1)
            ])
        if "learning mission designer" in prompt:
            return json.dumps(STEPS)
        if "assessment designer" in prompt:
            return json.dumps(QUIZ)
        if "professional translator" in prompt:
            texts = json.loads(re.search(r"INPUT:\n(.*)\n\nOUTPUT", prompt, re.S).group(1))
            return json.dumps([f"[ko] {t}" for t in texts], ensure_ascii=False)
        if "feedback sentence" in prompt:
            if isinstance(feedback, Exception):
                raise feedback
            return feedback
        raise AssertionError(f"Unexpected prompt: {prompt[:60]}")
    return handle


@pytest.fixture
def provider(make_provider):
    return make_provider(handler=_handler())


@pytest.fixture
def service(tmp_db, plan, provider):
    return CurriculumService(tmp_db, provider, FakeFetcher())


def _prompts(provider, marker):
    return [p for p in provider.prompts if marker in p]


def test_open_day_builds_all_artifacts(service, plan, provider):
    day = service.open_day("u1", plan.id, 1)
    assert day["status"] == "READY"
    assert day["steps"] == STEPS["steps"]
    assert len(day["quiz"]) == 3
    assert day["resources"][0]["url"] == "https://www.youtube.com/watch?v=abc"
    assert day["quizAttempt"] is None
    assert service.fetcher.calls == [("Components and props", ("react hooks",), "en")]


def test_reopening_day_uses_cache(service, plan, provider):
    service.open_day("u1", plan.id, 1)
    service.open_day("u1", plan.id, 1)
    assert len(_prompts(provider, "learning mission designer")) == 1
    assert len(_prompts(provider, "assessment designer")) == 1
    assert len(service.fetcher.calls) == 1


def test_second_language_is_translated(service, plan, provider):
    service.open_day("u1", plan.id, 1, language="en")
    ko = service.open_day("u1", plan.id, 1, language="ko")
    assert ko["steps"][0] == "[ko] Step 1"
    assert ko["quiz"][0]["answer"] == "[ko] useState"
    assert ko["resources"][0]["url"] == "https://www.youtube.com/watch?v=abc"
    assert len(_prompts(provider, "learning mission designer")) == 1
    assert len(service.fetcher.calls) == 1


def test_locked_day_cannot_be_opened(service, plan):
    with pytest.raises(InvalidArgument):
        service.open_day("u1", plan.id, 2)


def test_other_users_plan_is_not_found(tmp_db, service, plan):
    ensure_user(tmp_db, "u2")
    with pytest.raises(NotFound):
        service.open_day("u2", plan.id, 1)
    with pytest.raises(NotFound):
        service.submit_quiz("u2", plan.id, 1, RIGHT, True)


def test_pass_unlocks_next_day(tmp_db, service, plan):
    service.open_day("u1", plan.id, 1)
    result = service.submit_quiz("u1", plan.id, 1, RIGHT, True, today=date(2026, 3, 10))
    assert result["score"] == 3
    assert result["passed"] is True
    assert result["advanced"] is True
    assert result["unlockedDay"] == 2
    assert result["difficultySignal"] == "TOO_EASY"
    assert result["streak"] == 1
    assert get_day(tmp_db, "u1", plan.id, 2).status == DayStatus.READY

    reopened = service.open_day("u1", plan.id, 1)
    assert reopened["status"] == "DONE"
    assert reopened["quizAttempt"]["passed"] is True


def test_fail_keeps_day_open(tmp_db, service, plan):
    service.open_day("u1", plan.id, 1)
    result = service.submit_quiz("u1", plan.id, 1, WRONG, True)
    assert result["score"] == 0
    assert result["passed"] is False
    assert result["reason"] == "score_below_threshold"
    assert result["difficultySignal"] == "TOO_HARD"
    assert get_day(tmp_db, "u1", plan.id, 2).status == DayStatus.LOCKED
    assert service.open_day("u1", plan.id, 1)["quizAttempt"]["correct"] == 0


def test_resubmission_does_not_advance_twice(service, plan):
    service.open_day("u1", plan.id, 1)
    service.submit_quiz("u1", plan.id, 1, RIGHT, True, today=date(2026, 3, 10))
    again = service.submit_quiz("u1", plan.id, 1, RIGHT, True, today=date(2026, 3, 10))
    assert again["advanced"] is False
    assert again["reason"] == "already_done"


def test_translated_quiz_accepts_base_answers(service, plan):
    service.open_day("u1", plan.id, 1, language="en")
    service.open_day("u1", plan.id, 1, language="ko")
    result = service.submit_quiz("u1", plan.id, 1, RIGHT, True, language="ko")
    assert result["score"] == 3


def test_submit_without_quiz_is_rejected(service, plan):
    with pytest.raises(InvalidArgument):
        service.submit_quiz("u1", plan.id, 1, RIGHT, True)


def test_wrong_answer_count_is_rejected(service, plan):
    service.open_day("u1", plan.id, 1)
    with pytest.raises(InvalidArgument):
        service.submit_quiz("u1", plan.id, 1, RIGHT[:2], True)


def test_article_and_slides_on_demand(service, plan, provider):
    article_text = "# Components\n\n" + "Components are functions. " * 60 + "\n\n## Props\n\nData in."
    slides = [{"layout": "title", "title": "Components", "content": ["Reusable UI"]}]
    handle = _handler()

    def handler(prompt):
        if "learning article" in prompt:
            return article_text
        if "presentation" in prompt:
            return json.dumps(slides)
        return handle(prompt)

    provider.handler = handler
    article = service.get_artifact("u1", plan.id, 1, ArtifactType.ARTICLE)
    assert article["title"] == "Components"
    assert article["sections"] == ["Props"]
    deck = service.get_artifact("u1", plan.id, 1, "slides")
    assert deck[0]["title"] == "Components"


def test_ai_feedback_replaces_text(tmp_db, plan, make_provider):
    service = CurriculumService(tmp_db, make_provider(handler=_handler()), FakeFetcher(), ai_feedback=True)
    service.open_day("u1", plan.id, 1)
    result = service.submit_quiz("u1", plan.id, 1, RIGHT, True)
    assert result["feedback"] == "Nice work on hooks."
    assert result["difficultySignal"] == "TOO_EASY"


def test_ai_feedback_failure_keeps_default(tmp_db, plan, make_provider):
    provider = make_provider(handler=_handler(feedback=ProviderFailure("timeout")))
    service = CurriculumService(tmp_db, provider, FakeFetcher(), ai_feedback=True)
    service.open_day("u1", plan.id, 1)
    result = service.submit_quiz("u1", plan.id, 1, RIGHT, True)
    assert result["feedback"].startswith("Perfect score")


def test_generate_plan(tmp_db, make_provider):
    init_db(tmp_db)
    ensure_user(tmp_db, "u9", language="ko")
    provider = make_provider(handler=_handler())
    service = CurriculumService(tmp_db, provider, FakeFetcher())
    plan = service.generate_plan("u9", "React", "Ship a todo app", total_days=14, minutes_per_day=30)
    assert plan.total_days == 14
    assert plan.title == "14-Day Mastery: React (Ship a todo app)"
    assert plan.days[0].status == DayStatus.READY
    assert plan.days[13].mission_title == "Mission 14"
    assert len(_prompts(provider, "curriculum designer")) == 2
    assert "Korean" in provider.prompts[0]

    user = get_user(tmp_db, "u9")
    assert user.interest == "React"
    assert user.minutes_per_day == 30


def test_generate_plan_requires_interest(service):
    with pytest.raises(InvalidArgument):
        service.generate_plan("u1", "", "goal")


def test_generate_plan_unknown_user(service):
    with pytest.raises(NotFound):
        service.generate_plan("ghost", "React", "goal", total_days=3)


def test_create_plan_passthrough(tmp_db, service):
    plan = service.create_plan("u1", "Tiny", [{"missionTitle": "Only day"}])
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM days WHERE plan_id = ?", (plan.id,)).fetchone()[0] == 1
    conn.close()
