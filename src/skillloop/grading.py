"""Deterministic quiz grading."""
import string
from typing import Callable, Optional

from skillloop.errors import InvalidArgument
from skillloop.models import (
    DifficultySignal, GradeResult, Question, QuestionResult, QuestionType,
)

FEEDBACK = {
    DifficultySignal.TOO_EASY: "Perfect score. The next mission will push a little harder.",
    DifficultySignal.ON_TRACK: "Solid work. One answer missed, so the pace stays the same.",
    DifficultySignal.TOO_HARD: "This one was tough. Review the steps; the next mission will ease off.",
}


def _norm(text) -> str:
    return str(text or "").strip().lower()


def _letter(index: int) -> Optional[str]:
    if index < len(string.ascii_lowercase):
        return string.ascii_lowercase[index]
    return None


def _choice_for_letter(question: Question, letter: str) -> Optional[str]:
    if len(letter) != 1 or letter not in string.ascii_lowercase:
        return None
    idx = string.ascii_lowercase.index(letter)
    if idx < len(question.choices):
        return question.choices[idx]
    return None


def is_correct(question: Question, answer: str) -> bool:
    """Match one answer against a question. First matching rule wins."""
    user = _norm(answer)
    if not user:
        return False
    canonical = _norm(question.answer)

    if user == canonical:
        return True

    if question.type == QuestionType.MCQ and question.choices:
        for i, choice in enumerate(question.choices):
            if _norm(choice) == user and _letter(i) == canonical:
                return True
        resolved = _choice_for_letter(question, user)
        if resolved is not None and _norm(resolved) == canonical:
            return True

    if any(_norm(alt) == user for alt in question.alternative_answers):
        return True

    target = canonical
    if question.type == QuestionType.MCQ:
        # A bare letter key is compared through the choice it names.
        resolved = _choice_for_letter(question, canonical)
        if resolved is not None:
            target = _norm(resolved)
    if not target:
        return False
    if target in user:
        return True
    return user in target and len(user) > 3


def difficulty_signal_for(correct: int, total: int) -> DifficultySignal:
    wrong = total - correct
    if wrong <= 0:
        return DifficultySignal.TOO_EASY
    if wrong == 1:
        return DifficultySignal.ON_TRACK
    return DifficultySignal.TOO_HARD


def _coerce_questions(quiz: list) -> list[Question]:
    questions = []
    for i, item in enumerate(quiz):
        if isinstance(item, Question):
            questions.append(item)
            continue
        if not isinstance(item, dict) or "answer" not in item:
            raise InvalidArgument(f"Question {i + 1} is malformed")
        try:
            questions.append(Question.from_dict(item))
        except ValueError as e:
            raise InvalidArgument(f"Question {i + 1} is malformed: {e}") from e
    return questions


def grade(
    quiz: list,
    answers: list[str],
    feedback_writer: Callable[[GradeResult], str] | None = None,
) -> GradeResult:
    """Score answers against a quiz.

    The difficulty signal comes from the correct count only. A feedback
    writer may replace the feedback text; it never sees the signal as
    something it can change.
    """
    if quiz is None or answers is None:
        raise InvalidArgument("Quiz and answers are required")
    if len(quiz) != len(answers):
        raise InvalidArgument(
            f"Expected {len(quiz)} answers, got {len(answers)}"
        )
    questions = _coerce_questions(quiz)
    per_question = []
    for i, (question, answer) in enumerate(zip(questions, answers)):
        per_question.append(QuestionResult(
            index=i,
            answer=answer or "",
            correct=is_correct(question, answer),
            expected=question.answer,
        ))
    correct = sum(1 for r in per_question if r.correct)
    signal = difficulty_signal_for(correct, len(questions))
    result = GradeResult(
        correct=correct,
        total=len(questions),
        per_question=per_question,
        difficulty_signal=signal,
        feedback=FEEDBACK[signal],
    )
    if feedback_writer is not None:
        text = feedback_writer(result)
        if text:
            result.feedback = text.strip()
    return result
