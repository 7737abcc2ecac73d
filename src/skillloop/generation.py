"""Prompting and decoding for generated day content.

Model output is free text. lenient_decode pulls the JSON out of it and
every generator validates the result against a schema, so callers only
ever see well-formed artifacts or a GenerationFailed.
"""
import json
import logging
import math
import re

from pydantic import BaseModel, ValidationError

from skillloop.errors import GenerationFailed
from skillloop.models import Day
from skillloop.providers import TextProvider
from skillloop.schemas import Article, DaySpec, QuizArtifact, Slide, StepsArtifact

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "ko": "Korean (한국어)",
    "ja": "Japanese (日本語)",
    "zh": "Chinese (中文)",
    "es": "Spanish (Español)",
    "fr": "French (Français)",
    "de": "German (Deutsch)",
}

DIFFICULTY_LEVELS = {
    1: ("beginner", "basic concepts, simple explanations, many examples, no prior knowledge assumed"),
    2: ("intermediate", "moderate depth, some technical terms, practical applications, builds on basics"),
    3: ("advanced", "in-depth analysis, advanced concepts, expert-level techniques, assumes solid foundation"),
}

PLAN_BATCH_SIZE = 12

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def _loads(candidate: str):
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return json.loads(_TRAILING_COMMA_RE.sub(r"\1", candidate))


def lenient_decode(text: str):
    """Extract the first JSON object or array from model output.

    Tries fenced code blocks, then the outermost {...} or [...] span, and
    tolerates trailing commas. Raises GenerationFailed if nothing parses.
    """
    if not text or not text.strip():
        raise GenerationFailed("Empty AI response")
    candidates = [m.strip() for m in _FENCE_RE.findall(text)]
    stripped = text.strip()
    candidates.append(stripped)
    spans = []
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = stripped.find(open_ch), stripped.rfind(close_ch)
        if start != -1 and end > start:
            spans.append((start, stripped[start:end + 1]))
    # Whichever bracket opens first is the outer value.
    candidates.extend(span for _, span in sorted(spans))

    for candidate in candidates:
        try:
            return _loads(candidate)
        except json.JSONDecodeError:
            continue
    raise GenerationFailed("No JSON found in AI response")


def validate(model: type[BaseModel], data) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise GenerationFailed(f"AI response did not match {model.__name__}: {e.error_count()} error(s)") from e


def _difficulty(day: Day) -> tuple[str, str]:
    return DIFFICULTY_LEVELS.get(day.difficulty, DIFFICULTY_LEVELS[1])


def _phase(start_day: int, total_days: int) -> str:
    progress = round((start_day - 1) / total_days * 100)
    if progress >= 75:
        return "Advanced Mastery & Project Completion"
    if progress >= 50:
        return "Intermediate Skills & Practical Application"
    if progress >= 25:
        return "Building Blocks & Progressive Difficulty"
    return "Foundation & Core Concepts"


def generate_plan_days(
    provider: TextProvider,
    interest: str,
    goal: str,
    total_days: int = 14,
    language: str = "en",
    minutes_per_day: int = 20,
    baseline_level: str = "BEGINNER",
) -> list[dict]:
    """Generate day titles and focus lines in batches.

    Each batch sees the last five titles so the plan does not repeat itself.
    """
    days: list[dict] = []
    for start in range(1, total_days + 1, PLAN_BATCH_SIZE):
        end = min(start + PLAN_BATCH_SIZE - 1, total_days)
        previous = "\n".join(f"Day {d['dayNumber']}: {d['missionTitle']}" for d in days[-5:])
        prompt = f"""You are a world-class curriculum designer specialized in long-term mastery.
You are designing days {start} to {end} of a {total_days}-day mastery plan for: "{interest}".

ULTIMATE TARGET GOAL: "{goal}"
STUDENT LEVEL: {baseline_level}
DAILY COMMITMENT: {minutes_per_day} minutes
LANGUAGE: Generate titles and focus areas in {language_name(language)}.
CURRENT PHASE: {_phase(start, total_days)}

PREVIOUSLY COVERED (DO NOT REPEAT):
{previous or "Start of the journey."}

Every title must be unique, specific, and show progress toward the goal.

Return ONLY a JSON array:
[{{"dayNumber": {start}, "missionTitle": "...", "focus": "..."}}]"""
        parsed = lenient_decode(provider.generate(prompt, 2500))
        if not isinstance(parsed, list) or len(parsed) != end - start + 1:
            raise GenerationFailed(f"Expected {end - start + 1} days for batch {start}-{end}")
        for offset, item in enumerate(parsed):
            entry = validate(DaySpec, item)
            days.append({
                "dayNumber": start + offset,
                "missionTitle": entry.missionTitle or f"Day {start + offset}",
                "focus": entry.focus,
            })
    return days


def generate_steps(provider: TextProvider, day: Day, language: str,
                   interest: str = "", minutes_per_day: int = 20) -> dict:
    """Concrete learning steps plus a few search keywords for resources."""
    level, _ = _difficulty(day)
    prompt = f"""You are a learning mission designer. Create a day's learning steps as JSON.

Interest: "{interest}"
Day {day.day_number} Mission: "{day.mission_title}"
Focus: "{day.focus}"
Difficulty: {day.difficulty}/3 ({level})
Time budget: {minutes_per_day} minutes
Write everything in {language_name(language)}.

Create 5-8 concrete learning steps that fit the time budget, and 1-3 short
English search keywords for finding supporting videos.

Return ONLY valid JSON:
{{"steps": ["step1", "step2"], "keywords": ["keyword"]}}"""
    artifact = validate(StepsArtifact, lenient_decode(provider.generate(prompt, 1500)))
    return artifact.model_dump()


def generate_quiz(provider: TextProvider, day: Day, steps: list[str], language: str) -> list[dict]:
    """Exactly three questions: two multiple choice and one short answer."""
    level, _ = _difficulty(day)
    step_lines = "\n".join(f"- {s}" for s in steps)
    prompt = f"""You are a learning assessment designer. Write a quiz for this mission.

Mission: "{day.mission_title}"
Focus: "{day.focus}"
Difficulty: {level}
Steps covered:
{step_lines}
Write everything in {language_name(language)}.

Create exactly 3 questions (2 MCQ + 1 short answer).
- MCQ must have 3-4 choices; "answer" is the exact text of the correct choice.
- Short answers must be verifiable; list accepted synonyms, including the
  English term, in "alternativeAnswers".

Return ONLY valid JSON:
{{"quiz": [
  {{"q": "question", "type": "mcq", "choices": ["...", "...", "..."], "answer": "..."}},
  {{"q": "question", "type": "short", "answer": "...", "alternativeAnswers": ["..."]}}
]}}"""
    artifact = validate(QuizArtifact, lenient_decode(provider.generate(prompt, 1500)))
    for item in artifact.quiz:
        if item.type == "mcq" and not item.choices:
            raise GenerationFailed("Multiple choice question without choices")
    return [item.model_dump(exclude_none=True) for item in artifact.quiz]


def generate_article(provider: TextProvider, day: Day, language: str, steps: list[str] | None = None) -> dict:
    """A markdown article; title, sections and reading time come from the text."""
    level, description = _difficulty(day)
    context = f"Mission: {day.mission_title}. Focus: {day.focus}."
    if steps:
        context += " Steps: " + "; ".join(steps)
    prompt = f"""You are an expert educational content creator.
Generate a comprehensive learning article about "{day.mission_title}" in {language_name(language)}.

Target audience: {level} level ({description})
Additional context: {context}

Use markdown with an engaging introduction, 3-5 sections with "##" headers,
practical examples, and a short conclusion with key takeaways. Start with a
single "#" title line. Write ONLY the article."""
    text = provider.generate(prompt, 3000).strip()
    if len(text) < 200:
        raise GenerationFailed("Article too short")
    title_match = re.search(r"^#\s+(.+)$", text, re.M)
    sections = [s.strip() for s in re.findall(r"^##\s+(.+)$", text, re.M)]
    words = len(text.split())
    article = Article(
        title=title_match.group(1).strip() if title_match else f"Learning {day.mission_title}",
        content=text,
        estimatedMinutes=max(5, math.ceil(words / 200)),
        sections=sections,
    )
    return article.model_dump()


def generate_slides(provider: TextProvider, day: Day, language: str, topic: str = "") -> list[dict]:
    level, _ = _difficulty(day)
    name = language_name(language)
    prompt = f"""You are an expert educational content creator.
Create an educational presentation of 8-10 slides.

Topic: "{topic or day.mission_title}"
Mission: "{day.mission_title}"
Student level: {level}
OUTPUT LANGUAGE: {name}. Every title, bullet, speaker note and takeaway must be in {name}.

Layouts: "title", "bullets", "split", "image" (with "imageQuery"), "code"
(only for programming topics, with real code in "code"), "conclusion".
Bullets should be 10-20 words each.

Return ONLY a JSON array:
[{{"layout": "title", "title": "...", "content": ["..."], "speakerNotes": "...", "keyTakeaway": "..."}}]"""
    parsed = lenient_decode(provider.generate(prompt, 4000))
    if isinstance(parsed, dict) and isinstance(parsed.get("slides"), list):
        parsed = parsed["slides"]
    if not isinstance(parsed, list) or not parsed:
        raise GenerationFailed("Slides must be a non-empty JSON array")
    slides = [validate(Slide, item) for item in parsed]
    for slide in slides:
        if slide.layout == "code" and not slide.code:
            raise GenerationFailed(f"Code slide {slide.title!r} has no code")
    return [s.model_dump(exclude_none=True) for s in slides]
