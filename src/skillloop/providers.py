"""AI text generation providers."""
import logging
import re

from google import genai
from google.genai import types as genai_types

from skillloop.errors import ProviderFailure, ProviderQuotaExceeded
from skillloop.keypool import ResourcePool

logger = logging.getLogger(__name__)

_QUOTA_RE = re.compile(r"quota|capacity|rate.?limit|resource.?exhausted|too many requests|\b429\b", re.I)


def classify_provider_error(exc: Exception) -> Exception:
    """Map a raw provider exception to ProviderQuotaExceeded or ProviderFailure."""
    if isinstance(exc, (ProviderQuotaExceeded, ProviderFailure)):
        return exc
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return ProviderQuotaExceeded(str(exc))
    if _QUOTA_RE.search(str(exc)):
        return ProviderQuotaExceeded(str(exc))
    return ProviderFailure(str(exc) or type(exc).__name__)


class TextProvider:
    """Anything that turns a prompt into text."""

    def generate(self, prompt: str, max_tokens: int = 2500) -> str:
        raise NotImplementedError


class GeminiProvider(TextProvider):
    """Gemini over a pool of API keys, rotating on quota errors."""

    def __init__(self, pool: ResourcePool, model: str = "gemini-2.0-flash",
                 temperature: float = 0.7, timeout: float = 60.0):
        self.pool = pool
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def _generate_with_key(self, api_key: str, prompt: str, max_tokens: int) -> str:
        client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=int(self.timeout * 1000)),
        )
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except Exception as e:
            raise classify_provider_error(e) from e
        if not response.text:
            raise ProviderFailure("Empty response from Gemini")
        return response.text

    def generate(self, prompt: str, max_tokens: int = 2500) -> str:
        logger.debug("Gemini %s prompt (%d chars)", self.model, len(prompt))
        return self.pool.call(lambda key: self._generate_with_key(key, prompt, max_tokens))
