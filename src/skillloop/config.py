"""Runtime settings loaded from the environment."""
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DB_PATH = str(Path.home() / ".skillloop" / "skillloop.db")


def _split_keys(value: str | None) -> list[str]:
    if not value:
        return []
    return [k.strip() for k in value.split(",") if k.strip()]


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    gemini_keys: list[str] = field(default_factory=list)
    gemini_model: str = "gemini-2.0-flash"
    youtube_keys: list[str] = field(default_factory=list)
    http_timeout: float = 10.0
    pass_threshold: float = 0.6
    max_video_minutes: float = 30.0
    key_cooldown_seconds: int = 3600
    lookup_workers: int = 4
    log_level: str = "INFO"


def load_settings(env_file: str | None = None) -> Settings:
    """Build Settings from .env and the process environment.

    A comma-separated pool variable (GEMINI_API_KEYS) wins over the
    single-key variable (GEMINI_API_KEY); same for YouTube.
    """
    load_dotenv(env_file)
    gemini = _split_keys(os.environ.get("GEMINI_API_KEYS")) or _split_keys(os.environ.get("GEMINI_API_KEY"))
    youtube = _split_keys(os.environ.get("YOUTUBE_API_KEYS")) or _split_keys(os.environ.get("YOUTUBE_API_KEY"))
    return Settings(
        db_path=os.environ.get("SKILLLOOP_DB_PATH", DEFAULT_DB_PATH),
        gemini_keys=gemini,
        gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash"),
        youtube_keys=youtube,
        http_timeout=float(os.environ.get("SKILLLOOP_HTTP_TIMEOUT", "10")),
        pass_threshold=float(os.environ.get("SKILLLOOP_PASS_THRESHOLD", "0.6")),
        max_video_minutes=float(os.environ.get("SKILLLOOP_MAX_VIDEO_MINUTES", "30")),
        key_cooldown_seconds=int(os.environ.get("SKILLLOOP_KEY_COOLDOWN", "3600")),
        lookup_workers=int(os.environ.get("SKILLLOOP_LOOKUP_WORKERS", "4")),
        log_level=os.environ.get("SKILLLOOP_LOG_LEVEL", "INFO").upper(),
    )
