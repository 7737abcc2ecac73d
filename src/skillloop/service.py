"""Entry points used by the outer application (routing, UI, billing)."""
import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Optional

from skillloop import generation, progression
from skillloop.cache import ContentCache
from skillloop.config import Settings
from skillloop.db import get_connection, init_db
from skillloop.errors import InvalidArgument, NotFound, SkillLoopError
from skillloop.grading import grade
from skillloop.keypool import ResourcePool
from skillloop.log import configure_logging
from skillloop.models import ArtifactType, Day, DayStatus, GradeResult, User
from skillloop.providers import GeminiProvider, TextProvider
from skillloop.resources import ResourceFetcher, ResourcePools
from skillloop.translate import Translator

logger = logging.getLogger(__name__)


def get_user(db_path: str, user_id: str) -> User:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    if row is None:
        raise NotFound(f"User {user_id}")
    return User(**dict(row))


class CurriculumService:
    def __init__(
        self,
        db_path: str,
        provider: TextProvider,
        fetcher: ResourceFetcher,
        translator: Optional[Translator] = None,
        cache: Optional[ContentCache] = None,
        pass_threshold: float = progression.DEFAULT_PASS_THRESHOLD,
        ai_feedback: bool = False,
    ):
        self.db_path = db_path
        self.provider = provider
        self.fetcher = fetcher
        self.translator = translator or Translator(provider)
        self.cache = cache or ContentCache(db_path)
        self.pass_threshold = pass_threshold
        self.ai_feedback = ai_feedback

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "CurriculumService":
        configure_logging(settings.log_level)
        init_db(settings.db_path)
        gemini_pool = ResourcePool("gemini", settings.gemini_keys, settings.key_cooldown_seconds)
        provider = GeminiProvider(gemini_pool, model=settings.gemini_model)
        fetcher = ResourceFetcher(
            ResourcePools.from_settings(settings),
            timeout=settings.http_timeout,
            max_video_minutes=settings.max_video_minutes,
            workers=settings.lookup_workers,
        )
        return cls(settings.db_path, provider, fetcher, pass_threshold=settings.pass_threshold, **kwargs)

    # Plans

    def create_plan(self, user_id: str, title: str, days: list[dict], minutes_per_day: int = 20):
        return progression.create_plan(self.db_path, user_id, title, days, minutes_per_day)

    def generate_plan(
        self,
        user_id: str,
        interest: str,
        goal: str,
        total_days: int = 14,
        minutes_per_day: int = 20,
        language: Optional[str] = None,
        baseline_level: str = "BEGINNER",
    ):
        if not interest or not goal:
            raise InvalidArgument("Interest and goal are required")
        if total_days < 1:
            raise InvalidArgument("A plan needs at least one day")
        user = get_user(self.db_path, user_id)
        language = language or user.language
        days = generation.generate_plan_days(
            self.provider, interest, goal, total_days, language, minutes_per_day, baseline_level,
        )
        conn = get_connection(self.db_path)
        conn.execute(
            """UPDATE users SET interest = ?, goal = ?, minutes_per_day = ?, baseline_level = ?, language = ?
            WHERE id = ?""",
            (interest, goal, minutes_per_day, baseline_level, language, user_id),
        )
        conn.commit()
        conn.close()
        title = f"{total_days}-Day Mastery: {interest} ({goal})"
        return self.create_plan(user_id, title, days, minutes_per_day)

    # Day content

    def _open(self, user_id: str, plan_id: str, day_number: int) -> Day:
        day = progression.get_day(self.db_path, user_id, plan_id, day_number)
        if day.status == DayStatus.LOCKED:
            raise InvalidArgument(f"Day {day_number} is locked")
        return day

    def _steps(self, day: Day, user: User, language: str) -> dict:
        return self.cache.get_or_create(
            day.id, ArtifactType.STEPS, language,
            lambda lang: generation.generate_steps(
                self.provider, day, lang, user.interest, user.minutes_per_day,
            ),
            self.translator.translate_steps,
        )

    def get_artifact(self, user_id: str, plan_id: str, day_number: int,
                     artifact_type: ArtifactType, language: Optional[str] = None) -> Any:
        """One artifact for an unlocked day, generated or translated on first use."""
        user = get_user(self.db_path, user_id)
        language = language or user.language
        day = self._open(user_id, plan_id, day_number)
        artifact_type = ArtifactType(artifact_type)

        if artifact_type == ArtifactType.STEPS:
            return self._steps(day, user, language)

        if artifact_type == ArtifactType.QUIZ:
            steps = self._steps(day, user, language)["steps"]
            return self.cache.get_or_create(
                day.id, artifact_type, language,
                lambda lang: generation.generate_quiz(self.provider, day, steps, lang),
                self.translator.translate_quiz,
            )

        if artifact_type == ArtifactType.RESOURCES:
            keywords = self._steps(day, user, language).get("keywords", [])
            return self.cache.get_or_create(
                day.id, artifact_type, language,
                lambda lang: self.fetcher.assemble(day.mission_title, keywords, lang),
                self.translator.translate_resources,
            )

        if artifact_type == ArtifactType.ARTICLE:
            steps = self._steps(day, user, language)["steps"]
            return self.cache.get_or_create(
                day.id, artifact_type, language,
                lambda lang: generation.generate_article(self.provider, day, lang, steps),
                self.translator.translate_article,
            )

        return self.cache.get_or_create(
            day.id, artifact_type, language,
            lambda lang: generation.generate_slides(self.provider, day, lang, user.interest),
            self.translator.translate_slides,
        )

    def open_day(self, user_id: str, plan_id: str, day_number: int, language: Optional[str] = None) -> dict:
        """Day metadata with steps, quiz and resources, plus the latest attempt."""
        day = self._open(user_id, plan_id, day_number)
        steps = self.get_artifact(user_id, plan_id, day_number, ArtifactType.STEPS, language)
        quiz = self.get_artifact(user_id, plan_id, day_number, ArtifactType.QUIZ, language)
        resources = self.get_artifact(user_id, plan_id, day_number, ArtifactType.RESOURCES, language)
        attempt = progression.latest_attempt(self.db_path, user_id, plan_id, day_number)
        return {
            "id": day.id,
            "dayNumber": day.day_number,
            "missionTitle": day.mission_title,
            "focus": day.focus,
            "difficulty": day.difficulty,
            "status": day.status.value,
            "steps": steps["steps"],
            "quiz": quiz,
            "resources": resources,
            "quizAttempt": asdict(attempt) if attempt else None,
        }

    # Grading

    def _feedback_writer(self, language: str):
        def write(result: GradeResult) -> str:
            prompt = (
                f"A learner scored {result.correct}/{result.total} on a short quiz. "
                f"Write ONE encouraging, concrete feedback sentence in {generation.language_name(language)}. "
                "Do not mention difficulty changes. Return only the sentence."
            )
            try:
                return self.provider.generate(prompt, 120)
            except SkillLoopError as e:
                logger.warning("Feedback text unavailable, using default: %s", e)
                return ""
        return write

    def submit_quiz(
        self,
        user_id: str,
        plan_id: str,
        day_number: int,
        answers: list[str],
        resources_completed: bool,
        language: Optional[str] = None,
        today: Optional[date] = None,
    ) -> dict:
        """Grade answers, record the attempt and advance the plan.

        resources_completed is taken from the caller as-is.
        """
        user = get_user(self.db_path, user_id)
        language = language or user.language
        day = progression.get_day(self.db_path, user_id, plan_id, day_number)
        quiz = self.cache.peek(day.id, ArtifactType.QUIZ, language)
        if quiz is None:
            raise InvalidArgument(f"No quiz has been generated for day {day_number} in {language}")

        writer = self._feedback_writer(language) if self.ai_feedback else None
        result = grade(quiz, answers, feedback_writer=writer)
        passed = progression.is_passed(result, resources_completed, self.pass_threshold)
        outcome = progression.submit_grade(
            self.db_path, user_id, plan_id, day_number, result, resources_completed,
            today=today, pass_threshold=self.pass_threshold,
        )
        progression.record_attempt(self.db_path, user_id, plan_id, day_number, answers, result, passed)
        response = result.to_dict()
        response.update({
            "passed": passed,
            "advanced": outcome.advanced,
            "reason": outcome.reason,
            "status": outcome.status.value,
            "streak": outcome.streak,
            "unlockedDay": outcome.unlocked_day,
            "nextDifficulty": outcome.next_difficulty,
        })
        return response
