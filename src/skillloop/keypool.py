"""Credential pool with per-key cooldown and rotation.

Each external lookup category (video, encyclopedia, article, and the AI
text provider) gets its own pool. A key that reports quota exhaustion is
parked for an hour; a later success clears it straight away.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import requests

from skillloop.errors import ProviderFailure, ProviderQuotaExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COOLDOWN_SECONDS = 3600
# Stands in for keyless public APIs so they share the same execute path.
ANONYMOUS = "anonymous"


@dataclass
class Credential:
    key: str
    cooldown_until: float = 0.0
    fail_count: int = 0

    @property
    def label(self) -> str:
        return f"...{self.key[-6:]}"


class ResourcePool:
    def __init__(
        self,
        category: str,
        keys: list[str],
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.category = category
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._credentials = [Credential(k) for k in dict.fromkeys(keys) if k]
        if self._credentials:
            logger.info("%s pool initialized with %d key(s)", category, len(self._credentials))

    @property
    def size(self) -> int:
        return len(self._credentials)

    def credentials(self) -> list[Credential]:
        with self._lock:
            return [Credential(c.key, c.cooldown_until, c.fail_count) for c in self._credentials]

    def select_credential(self) -> Optional[Credential]:
        """First available key, else the one that recovers soonest."""
        with self._lock:
            return self._select(exclude=())

    def _select(self, exclude) -> Optional[Credential]:
        candidates = [c for c in self._credentials if c.key not in exclude]
        if not candidates:
            return None
        now = self._clock()
        for cred in candidates:
            if cred.cooldown_until <= now:
                return cred
        return min(candidates, key=lambda c: c.cooldown_until)

    def _next_available(self, tried: set) -> Optional[Credential]:
        now = self._clock()
        for cred in self._credentials:
            if cred.key not in tried and cred.cooldown_until <= now:
                return cred
        return None

    def mark_rate_limited(self, key: str, seconds: Optional[int] = None) -> None:
        seconds = self.cooldown_seconds if seconds is None else seconds
        with self._lock:
            for cred in self._credentials:
                if cred.key == key:
                    cred.fail_count += 1
                    cred.cooldown_until = self._clock() + seconds
                    logger.warning(
                        "%s key %s cooldown %ds (fail #%d)",
                        self.category, cred.label, seconds, cred.fail_count,
                    )

    def mark_success(self, key: str) -> None:
        with self._lock:
            for cred in self._credentials:
                if cred.key == key:
                    cred.fail_count = 0
                    cred.cooldown_until = 0.0

    def call(self, op: Callable[[str], T]) -> T:
        """Run op with a pooled key, rotating on quota errors.

        Attempts are bounded by the number of keys. Raises
        ProviderQuotaExceeded once every key is exhausted and
        ProviderFailure when no key is configured; other errors from op
        propagate unchanged.
        """
        with self._lock:
            cred = self._select(exclude=())
        if cred is None:
            raise ProviderFailure(f"No {self.category} API key configured")

        tried: set[str] = set()
        last_error: ProviderQuotaExceeded | None = None
        for _ in range(len(self._credentials)):
            tried.add(cred.key)
            try:
                result = op(cred.key)
            except ProviderQuotaExceeded as e:
                last_error = e
                self.mark_rate_limited(cred.key)
                with self._lock:
                    nxt = self._next_available(tried)
                if nxt is None:
                    break
                logger.info("%s quota on %s, rotating to %s", self.category, cred.label, nxt.label)
                cred = nxt
                continue
            self.mark_success(cred.key)
            return result

        logger.warning("%s pool exhausted", self.category)
        raise last_error or ProviderQuotaExceeded(f"All {self.category} keys exhausted")

    def execute(self, op: Callable[[str], T], fallback: Callable[[str], T]) -> T:
        """Like call(), but degrades instead of raising.

        When no key is configured, every key is exhausted, or the provider
        fails outright, fallback(reason) is returned.
        """
        try:
            return self.call(op)
        except (ProviderQuotaExceeded, ProviderFailure, requests.RequestException) as e:
            logger.warning("%s lookup degraded: %s", self.category, e)
            return fallback(str(e) or type(e).__name__)
