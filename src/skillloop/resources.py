"""Supporting-link assembly for one day.

Lookups for a day are independent, so they run side by side on a thread
pool and are joined before the list is built. Every lookup goes through a
ResourcePool and degrades to a placeholder link, so this module never fails
the content request it serves.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from skillloop import lookups
from skillloop.config import Settings
from skillloop.keypool import ResourcePool

logger = logging.getLogger(__name__)


@dataclass
class ResourcePools:
    video: ResourcePool
    encyclopedia: ResourcePool
    article: ResourcePool

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResourcePools":
        cooldown = settings.key_cooldown_seconds
        return cls(
            video=ResourcePool("youtube", settings.youtube_keys, cooldown),
            encyclopedia=ResourcePool("wikipedia", lookups.public_keys([]), cooldown),
            article=ResourcePool("devto", lookups.public_keys([]), cooldown),
        )


class ResourceFetcher:
    def __init__(self, pools: ResourcePools, timeout: float = 10.0,
                 max_video_minutes: float | None = 30.0, workers: int = 4):
        self.pools = pools
        self.timeout = timeout
        self.max_video_minutes = max_video_minutes
        self.workers = workers

    def videos(self, query: str, language: str) -> list[dict]:
        return self.pools.video.execute(
            lambda key: lookups.search_videos(
                key, query, language, max_results=3,
                max_minutes=self.max_video_minutes, timeout=self.timeout,
            ),
            lambda reason: lookups.video_fallback(query, reason),
        )

    def encyclopedia(self, query: str, language: str) -> dict:
        """Local-language page first, then English, then a search link."""
        langs = [language] if language == "en" else [language, "en"]
        reason = "no page found"
        for lang in langs:
            page = self.pools.encyclopedia.execute(
                lambda key, lang=lang: lookups.search_wikipedia(key, query, lang, timeout=self.timeout),
                lambda why, lang=lang: lookups.wikipedia_fallback(query, lang, why),
            )
            if page is not None and "error" not in page:
                return page
            if page is not None:
                reason = page["error"]
        return lookups.wikipedia_fallback(query, language, reason)

    def article(self, query: str) -> dict:
        found = self.pools.article.execute(
            lambda key: lookups.search_articles(key, query, timeout=self.timeout),
            lambda reason: lookups.article_fallback(query, reason),
        )
        return found or lookups.article_fallback(query, "no article found")

    def assemble(self, topic: str, keywords: list[str], language: str = "en") -> list[dict]:
        """Collect supporting links for a day.

        One video per keyword (falling back to the topic), one encyclopedia
        page and one article, de-duplicated by URL in that order.
        """
        queries = [k for k in keywords if k.strip()] or [topic]
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            video_futures = [executor.submit(self.videos, q, language) for q in queries]
            wiki_future = executor.submit(self.encyclopedia, topic, language)
            article_future = executor.submit(self.article, topic)

            resources = []
            for future in video_futures:
                found = future.result()
                if found:
                    resources.append(found[0])
            resources.append(wiki_future.result())
            resources.append(article_future.result())

        seen = set()
        unique = []
        for res in resources:
            if res["url"] in seen:
                continue
            seen.add(res["url"])
            unique.append(res)
        degraded = sum(1 for r in unique if "error" in r)
        if degraded:
            logger.info("Assembled %d resources for %r (%d placeholders)", len(unique), topic, degraded)
        return unique
