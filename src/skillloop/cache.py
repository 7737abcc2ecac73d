"""Per-day, per-language cache of generated artifacts.

Each artifact column on a day row holds one JSON object mapping language
codes to artifacts, plus a "_baseLang" marker naming the language that was
generated directly. Every other language is a translation of that entry.
"""
import json
import logging
import threading
import weakref
from typing import Any, Callable, Optional

from skillloop.db import get_connection, write_transaction
from skillloop.errors import GenerationFailed, NotFound, SkillLoopError
from skillloop.models import ArtifactType

logger = logging.getLogger(__name__)

BASE_LANG_KEY = "_baseLang"


class _KeyLock:
    """A mutex that can sit in a WeakValueDictionary."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc):
        self._lock.release()
        return False


Generator = Callable[[str], Any]
Translator = Callable[[Any, str, str], Any]


def _column(artifact_type: ArtifactType) -> str:
    return ArtifactType(artifact_type).value


def decode_blob(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Artifact cache blob is not a JSON object")
    return data


def base_language(blob: dict) -> Optional[str]:
    """The language every translation derives from.

    Blobs written before the marker existed fall back to the first
    language key.
    """
    marked = blob.get(BASE_LANG_KEY)
    if marked and blob.get(marked) is not None:
        return marked
    for key, value in blob.items():
        if key != BASE_LANG_KEY and value is not None:
            return key
    return None


class ContentCache:
    """Serve artifacts, generating each day+type once and translating the rest.

    A lock per (day, artifact type) covers the decision and the write, so
    two requests for the same day cannot both run base generation. One
    instance is meant to be shared by the whole process.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._locks = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, day_id: int, column: str) -> _KeyLock:
        # Entries vanish once no request holds them.
        with self._registry_lock:
            lock = self._locks.get((day_id, column))
            if lock is None:
                lock = _KeyLock()
                self._locks[(day_id, column)] = lock
            return lock

    def _read(self, day_id: int, column: str) -> dict:
        conn = get_connection(self.db_path)
        row = conn.execute(f"SELECT {column} FROM days WHERE id = ?", (day_id,)).fetchone()
        conn.close()
        if row is None:
            raise NotFound(f"Day {day_id}")
        return decode_blob(row[column])

    def _store(self, day_id: int, column: str, language: str, artifact: Any, is_base: bool) -> None:
        with write_transaction(self.db_path) as conn:
            row = conn.execute(f"SELECT {column} FROM days WHERE id = ?", (day_id,)).fetchone()
            if row is None:
                raise NotFound(f"Day {day_id}")
            blob = decode_blob(row[column])
            blob[language] = artifact
            if is_base and not base_language({k: v for k, v in blob.items() if k != language}):
                blob[BASE_LANG_KEY] = language
            conn.execute(
                f"UPDATE days SET {column} = ? WHERE id = ?",
                (json.dumps(blob, ensure_ascii=False), day_id),
            )

    def peek(self, day_id: int, artifact_type: ArtifactType, language: str) -> Any:
        """Cached artifact for a language, or None. Never calls out."""
        return self._read(day_id, _column(artifact_type)).get(language)

    def languages(self, day_id: int, artifact_type: ArtifactType) -> list[str]:
        blob = self._read(day_id, _column(artifact_type))
        return [k for k in blob if k != BASE_LANG_KEY]

    def get_or_create(
        self,
        day_id: int,
        artifact_type: ArtifactType,
        language: str,
        generator: Generator,
        translator: Translator,
    ) -> Any:
        column = _column(artifact_type)
        with self._lock_for(day_id, column):
            blob = self._read(day_id, column)
            if blob.get(language) is not None:
                logger.debug("Cache hit: day %d %s [%s]", day_id, column, language)
                return blob[language]

            base = base_language(blob)
            if base is not None:
                logger.info("Translating day %d %s from %s to %s", day_id, column, base, language)
                artifact = self._call(translator, blob[base], base, language)
                is_base = False
            else:
                logger.info("Generating base %s for day %d in %s", column, day_id, language)
                artifact = self._call(generator, language)
                is_base = True

            if artifact is None:
                raise GenerationFailed(f"Empty {column} artifact for day {day_id}")
            self._store(day_id, column, language, artifact, is_base)
            return artifact

    @staticmethod
    def _call(fn: Callable, *args) -> Any:
        try:
            return fn(*args)
        except SkillLoopError:
            raise
        except Exception as e:
            raise GenerationFailed(f"{type(e).__name__}: {e}") from e
