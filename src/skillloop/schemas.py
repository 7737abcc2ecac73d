"""Pydantic models for AI-generated artifacts.

These are the shapes the rest of the package relies on; anything the model
returns is validated here before it is cached.
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class DaySpec(BaseModel):
    dayNumber: Optional[int] = None
    missionTitle: str = Field(max_length=120)
    focus: str = Field(default="", max_length=250)

    @field_validator("missionTitle", "focus", mode="before")
    @classmethod
    def truncate(cls, v, info):
        limit = 120 if info.field_name == "missionTitle" else 250
        return str(v or "")[:limit]


class StepsArtifact(BaseModel):
    steps: list[str] = Field(min_length=5, max_length=8)
    keywords: list[str] = Field(default_factory=list)


class QuizItem(BaseModel):
    q: str
    type: Literal["mcq", "short"]
    choices: Optional[list[str]] = Field(default=None, min_length=2, max_length=4)
    answer: str
    alternativeAnswers: list[str] = Field(default_factory=list)


class QuizArtifact(BaseModel):
    quiz: list[QuizItem] = Field(min_length=3, max_length=3)


class Article(BaseModel):
    title: str
    content: str
    estimatedMinutes: int = 5
    sections: list[str] = Field(default_factory=list)


class Slide(BaseModel):
    title: str
    content: list[str] = Field(default_factory=list)
    layout: Literal["title", "bullets", "code", "conclusion", "image", "split"] = "bullets"
    speakerNotes: Optional[str] = None
    code: Optional[str] = None
    language: Optional[str] = None
    imageQuery: Optional[str] = None
    keyTakeaway: Optional[str] = None
