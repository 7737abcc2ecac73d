"""Day unlocking, difficulty adaptation and streak bookkeeping."""
import json
import logging
import math
import sqlite3
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from skillloop.db import get_connection, write_transaction
from skillloop.errors import InvalidArgument, NotFound
from skillloop.models import (
    Day, DayStatus, DifficultySignal, GradeResult, Plan, ProgressionOutcome, QuizAttempt,
)

logger = logging.getLogger(__name__)

DEFAULT_PASS_THRESHOLD = 0.6


def baseline_difficulty(index: int, total_days: int) -> int:
    """Initial difficulty ramp across a plan (0-based index)."""
    return min(3, 1 + math.floor((index / total_days) * 2.5))


def next_difficulty(current: int, signal: DifficultySignal) -> int:
    if signal == DifficultySignal.TOO_EASY:
        return min(3, current + 1)
    if signal == DifficultySignal.TOO_HARD:
        return max(1, current - 1)
    return current


def next_streak(streak: int, last_completed: Optional[str], today: date) -> int:
    if last_completed:
        last = date.fromisoformat(last_completed[:10])
        if last == today:
            return streak
        if last == today - timedelta(days=1):
            return streak + 1
    return 1


def is_passed(grade: GradeResult, resources_completed: bool, threshold: float = DEFAULT_PASS_THRESHOLD) -> bool:
    return grade.ratio >= threshold and bool(resources_completed)


def _row_to_day(row: sqlite3.Row) -> Day:
    return Day(
        id=row["id"],
        plan_id=row["plan_id"],
        day_number=row["day_number"],
        mission_title=row["mission_title"],
        focus=row["focus"] or "",
        status=DayStatus(row["status"]),
        difficulty=row["difficulty"],
        result=row["result"],
    )


def create_plan(
    db_path: str,
    user_id: str,
    title: str,
    days: list[dict],
    minutes_per_day: int = 20,
) -> Plan:
    """Create a plan and all of its days in one transaction.

    Day 1 starts READY, every later day LOCKED.
    """
    if not days:
        raise InvalidArgument("A plan needs at least one day")
    plan_id = uuid.uuid4().hex
    total = len(days)
    created_at = datetime.now().isoformat()
    with write_transaction(db_path) as conn:
        user = conn.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone()
        if user is None:
            raise NotFound(f"User {user_id}")
        conn.execute(
            "INSERT INTO plans (id, user_id, title, total_days, minutes_per_day, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (plan_id, user_id, title, total, minutes_per_day, created_at),
        )
        for idx, entry in enumerate(days):
            if not entry.get("missionTitle"):
                raise InvalidArgument(f"Day {idx + 1} has no mission title")
            difficulty = entry.get("difficulty") or baseline_difficulty(idx, total)
            if difficulty not in (1, 2, 3):
                raise InvalidArgument(f"Difficulty must be 1-3, got {difficulty}")
            conn.execute(
                """INSERT INTO days (plan_id, day_number, mission_title, focus, status, difficulty)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    plan_id, idx + 1, entry["missionTitle"], entry.get("focus", ""),
                    DayStatus.READY.value if idx == 0 else DayStatus.LOCKED.value,
                    difficulty,
                ),
            )
    logger.info("Created plan %s with %d days for user %s", plan_id, total, user_id)
    return get_plan(db_path, user_id, plan_id)


def get_plan(db_path: str, user_id: str, plan_id: str) -> Plan:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM plans WHERE id = ? AND user_id = ?", (plan_id, user_id)
    ).fetchone()
    if row is None:
        conn.close()
        raise NotFound(f"Plan {plan_id}")
    days = conn.execute(
        "SELECT * FROM days WHERE plan_id = ? ORDER BY day_number", (plan_id,)
    ).fetchall()
    conn.close()
    return Plan(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        total_days=row["total_days"],
        minutes_per_day=row["minutes_per_day"],
        created_at=row["created_at"],
        days=[_row_to_day(d) for d in days],
    )


def _fetch_owned_day(conn: sqlite3.Connection, user_id: str, plan_id: str, day_number: int) -> sqlite3.Row:
    row = conn.execute(
        """SELECT d.* FROM days d JOIN plans p ON d.plan_id = p.id
        WHERE d.plan_id = ? AND d.day_number = ? AND p.user_id = ?""",
        (plan_id, day_number, user_id),
    ).fetchone()
    if row is None:
        raise NotFound(f"Day {day_number} of plan {plan_id}")
    return row


def get_day(db_path: str, user_id: str, plan_id: str, day_number: int) -> Day:
    conn = get_connection(db_path)
    try:
        return _row_to_day(_fetch_owned_day(conn, user_id, plan_id, day_number))
    finally:
        conn.close()


def submit_grade(
    db_path: str,
    user_id: str,
    plan_id: str,
    day_number: int,
    grade: GradeResult,
    resources_completed: bool,
    today: Optional[date] = None,
    pass_threshold: float = DEFAULT_PASS_THRESHOLD,
) -> ProgressionOutcome:
    """Apply a grading outcome to a day.

    Only a READY day can advance. Re-submitting for a DONE day is a no-op,
    so a retried request never bumps the streak or unlocks twice.
    """
    today = today or date.today()
    with write_transaction(db_path) as conn:
        row = _fetch_owned_day(conn, user_id, plan_id, day_number)
        status = DayStatus(row["status"])
        if status != DayStatus.READY:
            reason = "already_done" if status == DayStatus.DONE else "locked"
            return ProgressionOutcome(day_number=day_number, status=status, advanced=False, reason=reason)

        if not is_passed(grade, resources_completed, pass_threshold):
            reason = "resources_incomplete" if grade.ratio >= pass_threshold else "score_below_threshold"
            logger.info("Day %d of plan %s not passed: %s", day_number, plan_id, reason)
            return ProgressionOutcome(day_number=day_number, status=status, advanced=False, reason=reason)

        conn.execute(
            "UPDATE days SET status = ?, result = ? WHERE id = ?",
            (DayStatus.DONE.value, json.dumps(grade.to_dict()), row["id"]),
        )

        user = conn.execute(
            "SELECT streak, last_completed_date FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        streak = None
        if user is not None:
            streak = next_streak(user["streak"], user["last_completed_date"], today)
            conn.execute(
                "UPDATE users SET streak = ?, last_completed_date = ? WHERE id = ?",
                (streak, today.isoformat(), user_id),
            )

        difficulty = next_difficulty(row["difficulty"], grade.difficulty_signal)
        unlocked = None
        nxt = conn.execute(
            "SELECT id, status FROM days WHERE plan_id = ? AND day_number = ?",
            (plan_id, day_number + 1),
        ).fetchone()
        if nxt is not None and nxt["status"] == DayStatus.LOCKED.value:
            conn.execute(
                "UPDATE days SET status = ?, difficulty = ? WHERE id = ?",
                (DayStatus.READY.value, difficulty, nxt["id"]),
            )
            unlocked = day_number + 1

    logger.info(
        "Day %d of plan %s done (%s), unlocked=%s difficulty=%d",
        day_number, plan_id, grade.difficulty_signal.value, unlocked, difficulty,
    )
    return ProgressionOutcome(
        day_number=day_number,
        status=DayStatus.DONE,
        advanced=True,
        streak=streak,
        unlocked_day=unlocked,
        next_difficulty=difficulty,
    )


def record_attempt(
    db_path: str,
    user_id: str,
    plan_id: str,
    day_number: int,
    answers: list[str],
    grade: GradeResult,
    passed: bool,
) -> int:
    conn = get_connection(db_path)
    cur = conn.execute(
        """INSERT INTO quiz_attempts
        (user_id, plan_id, day_number, answers, score, correct, total, feedback, passed, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id, plan_id, day_number, json.dumps(answers), grade.ratio,
            grade.correct, grade.total, grade.feedback, int(passed), datetime.now().isoformat(),
        ),
    )
    conn.commit()
    attempt_id = cur.lastrowid
    conn.close()
    return attempt_id


def latest_attempt(db_path: str, user_id: str, plan_id: str, day_number: int) -> QuizAttempt | None:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT * FROM quiz_attempts WHERE user_id = ? AND plan_id = ? AND day_number = ?
        ORDER BY id DESC LIMIT 1""",
        (user_id, plan_id, day_number),
    ).fetchone()
    conn.close()
    if row is None:
        return None
    return QuizAttempt(
        id=row["id"],
        user_id=row["user_id"],
        plan_id=row["plan_id"],
        day_number=row["day_number"],
        answers=json.loads(row["answers"]),
        score=row["score"],
        correct=row["correct"],
        total=row["total"],
        feedback=row["feedback"] or "",
        passed=bool(row["passed"]),
        created_at=row["created_at"],
    )
