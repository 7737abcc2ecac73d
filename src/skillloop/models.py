"""Data classes for the curriculum domain model."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DayStatus(str, Enum):
    LOCKED = "LOCKED"
    READY = "READY"
    DONE = "DONE"


class DifficultySignal(str, Enum):
    TOO_EASY = "TOO_EASY"
    ON_TRACK = "ON_TRACK"
    TOO_HARD = "TOO_HARD"


class ArtifactType(str, Enum):
    STEPS = "steps"
    QUIZ = "quiz"
    RESOURCES = "resources"
    ARTICLE = "article"
    SLIDES = "slides"


class QuestionType(str, Enum):
    MCQ = "mcq"
    SHORT = "short"


@dataclass
class User:
    id: str
    language: str = "en"
    streak: int = 0
    last_completed_date: Optional[str] = None
    subscription_tier: str = "free"
    interest: str = ""
    goal: str = ""
    minutes_per_day: int = 20
    baseline_level: str = "BEGINNER"


@dataclass
class Day:
    id: int
    plan_id: str
    day_number: int
    mission_title: str
    focus: str = ""
    status: DayStatus = DayStatus.LOCKED
    difficulty: int = 1
    result: Optional[str] = None  # JSON


@dataclass
class Plan:
    id: str
    user_id: str
    title: str
    total_days: int
    minutes_per_day: int = 20
    created_at: Optional[str] = None
    days: list[Day] = field(default_factory=list)


@dataclass
class Question:
    q: str
    type: QuestionType
    answer: str
    choices: list[str] = field(default_factory=list)
    alternative_answers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            q=data.get("q", ""),
            type=QuestionType(data.get("type", "short")),
            answer=str(data.get("answer", "")),
            choices=list(data.get("choices") or []),
            alternative_answers=list(data.get("alternativeAnswers") or data.get("alternative_answers") or []),
        )

    def to_dict(self) -> dict:
        data = {"q": self.q, "type": self.type.value, "answer": self.answer}
        if self.choices:
            data["choices"] = list(self.choices)
        if self.alternative_answers:
            data["alternativeAnswers"] = list(self.alternative_answers)
        return data


@dataclass
class QuestionResult:
    index: int
    answer: str
    correct: bool
    expected: str


@dataclass
class GradeResult:
    correct: int
    total: int
    per_question: list[QuestionResult]
    difficulty_signal: DifficultySignal
    feedback: str = ""

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total

    def to_dict(self) -> dict:
        return {
            "score": self.correct,
            "total": self.total,
            "feedback": self.feedback,
            "difficultySignal": self.difficulty_signal.value,
            "perQuestion": [
                {"index": r.index, "answer": r.answer, "correct": r.correct, "expected": r.expected}
                for r in self.per_question
            ],
        }


@dataclass
class QuizAttempt:
    id: int
    user_id: str
    plan_id: str
    day_number: int
    answers: list[str]
    score: float
    correct: int
    total: int
    feedback: str = ""
    passed: bool = False
    created_at: Optional[str] = None


@dataclass
class ProgressionOutcome:
    day_number: int
    status: DayStatus
    advanced: bool
    reason: Optional[str] = None
    streak: Optional[int] = None
    unlocked_day: Optional[int] = None
    next_difficulty: Optional[int] = None
