"""Video, encyclopedia and article lookups.

Each lookup takes the credential to use as its first argument so it can be
run through ResourcePool.execute, and raises ProviderQuotaExceeded when the
upstream reports quota exhaustion.
"""
import logging
import re
from contextlib import contextmanager
from urllib.parse import quote, quote_plus

import requests

from skillloop.errors import ProviderFailure, ProviderQuotaExceeded
from skillloop.keypool import ANONYMOUS

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
DEVTO_ARTICLES_URL = "https://dev.to/api/articles"
USER_AGENT = "SkillLoop/1.0 (curriculum resource lookup)"

REGION_CODES = {"ko": "KR", "ja": "JP", "zh": "CN", "es": "ES", "fr": "FR", "de": "DE", "en": "US"}

SPAM_KEYWORDS = [
    "challenge", "contest", "giveaway", "price", "hackathon", "winner",
    "promotion", "sponsor", "course", "bootcamp",
]

_DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def _check_response(resp: requests.Response, provider: str) -> None:
    if resp.ok:
        return
    body = resp.text.lower()
    if resp.status_code in (403, 429) and ("quota" in body or "ratelimit" in body or resp.status_code == 429):
        raise ProviderQuotaExceeded(f"{provider} quota exceeded ({resp.status_code})")
    raise ProviderFailure(f"{provider} returned HTTP {resp.status_code}")


@contextmanager
def _expect_shape(provider: str):
    """Turn a malformed 200 response into ProviderFailure."""
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise ProviderFailure(f"Unexpected {provider} response: {type(e).__name__}: {e}") from e


def parse_duration(iso: str) -> dict:
    """Parse an ISO-8601 video duration like PT1H2M3S."""
    match = _DURATION_RE.fullmatch(iso or "")
    if not match or not any(match.groups()):
        return {}
    hours, minutes, seconds = (int(g or 0) for g in match.groups())
    total = hours * 60 + minutes + seconds / 60
    if hours:
        label = f"{hours}:{minutes:02d}:{seconds:02d}"
    else:
        label = f"{minutes}:{seconds:02d}"
    return {"duration": label, "durationMinutes": round(total, 1)}


def format_view_count(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M views"
    if count >= 1000:
        return f"{count / 1000:.0f}K views"
    return f"{count} views"


def youtube_search_url(query: str) -> str:
    return f"https://www.youtube.com/results?search_query={quote_plus(query)}&sp=CAMSAhAB"


def video_fallback(query: str, reason: str) -> list[dict]:
    return [{
        "type": "youtube",
        "title": f"Search: {query}",
        "url": youtube_search_url(query),
        "error": reason,
    }]


@_expect_shape("YouTube")
def search_videos(
    api_key: str,
    query: str,
    language: str = "en",
    order: str = "relevance",
    max_results: int = 3,
    max_minutes: float | None = None,
    timeout: float = 10.0,
) -> list[dict]:
    """Top YouTube videos for a query; videos longer than max_minutes are dropped."""
    params = {
        "part": "snippet",
        "q": query,
        "type": "video",
        "order": order,
        "maxResults": max_results,
        "regionCode": REGION_CODES.get(language, "US"),
        "relevanceLanguage": language,
        "key": api_key,
    }
    resp = requests.get(YOUTUBE_SEARCH_URL, params=params, timeout=timeout)
    _check_response(resp, "YouTube")
    items = resp.json().get("items") or []
    logger.debug("YouTube search %r returned %d item(s)", query, len(items))
    if not items:
        return []

    ids = [item["id"]["videoId"] for item in items if item.get("id", {}).get("videoId")]
    details = {}
    stats_resp = requests.get(
        YOUTUBE_VIDEOS_URL,
        params={"part": "statistics,contentDetails", "id": ",".join(ids), "key": api_key},
        timeout=timeout,
    )
    _check_response(stats_resp, "YouTube")
    for video in stats_resp.json().get("items") or []:
        details[video["id"]] = video

    videos = []
    for item in items:
        video_id = item.get("id", {}).get("videoId")
        if not video_id:
            continue
        detail = details.get(video_id, {})
        parsed = parse_duration(detail.get("contentDetails", {}).get("duration", ""))
        if max_minutes is not None and parsed.get("durationMinutes", 0) > max_minutes:
            continue
        snippet = item.get("snippet", {})
        video = {
            "type": "youtube",
            "videoId": video_id,
            "title": snippet.get("title", ""),
            "channelTitle": snippet.get("channelTitle", ""),
            "thumbnail": snippet.get("thumbnails", {}).get("medium", {}).get("url", ""),
            "url": f"https://www.youtube.com/watch?v={video_id}",
            **parsed,
        }
        views = detail.get("statistics", {}).get("viewCount")
        if views:
            video["viewCount"] = format_view_count(int(views))
        videos.append(video)
    return videos


def _wiki_search(query: str, lang: str, timeout: float) -> list[dict]:
    resp = requests.get(
        f"https://{lang}.wikipedia.org/w/api.php",
        params={"action": "query", "list": "search", "srsearch": query, "format": "json"},
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
    )
    _check_response(resp, "Wikipedia")
    return resp.json().get("query", {}).get("search") or []


@_expect_shape("Wikipedia")
def search_wikipedia(api_key: str, query: str, lang: str = "en", timeout: float = 10.0) -> dict | None:
    """Best Wikipedia page for a query, or None when nothing matches."""
    results = _wiki_search(query, lang, timeout)
    if not results:
        results = _wiki_search(f"{query} (software)", lang, timeout)
    if not results:
        return None
    top = results[0]
    if "disambiguation" in top["title"].lower() and len(results) > 1:
        top = results[1]
    title = top["title"]
    return {
        "type": "wikipedia",
        "title": f"Wikipedia: {title}",
        "url": f"https://{lang}.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}",
        "description": re.sub(r"<[^>]*>", "", top.get("snippet", "")),
    }


def wikipedia_fallback(query: str, lang: str, reason: str) -> dict:
    return {
        "type": "wikipedia",
        "title": f"Wikipedia search: {query}",
        "url": f"https://{lang}.wikipedia.org/w/index.php?search={quote_plus(query)}",
        "error": reason,
    }


def _devto_articles(tag: str, per_page: int, timeout: float) -> list[dict]:
    resp = requests.get(
        DEVTO_ARTICLES_URL,
        params={"tag": tag, "top": 365, "per_page": per_page},
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
    )
    _check_response(resp, "Dev.to")
    data = resp.json() or []
    if not isinstance(data, list):
        raise ProviderFailure("Dev.to returned an object where a list was expected")
    return data


@_expect_shape("Dev.to")
def search_articles(api_key: str, query: str, timeout: float = 10.0) -> dict | None:
    """Most-reacted relevant Dev.to article for a topic."""
    specific = re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", query.strip().lower()))
    articles = _devto_articles(specific, 5, timeout) if specific else []
    if not articles:
        words = query.strip().lower().split()
        broad = re.sub(r"[^a-z0-9]", "", words[0]) if words else ""
        if broad.endswith("js"):
            broad = broad[:-2]
        if broad and broad != specific:
            articles = _devto_articles(broad, 8, timeout)
    if not articles:
        logger.debug("No Dev.to articles tagged for %r", query)
        return None

    query_words = [w for w in query.lower().split() if len(w) > 2]
    valid = []
    for article in articles:
        title = article.get("title", "").lower()
        if any(k in title for k in SPAM_KEYWORDS):
            continue
        if query_words and not any(w in title for w in query_words):
            continue
        valid.append(article)
    if not valid:
        return None
    best = max(valid, key=lambda a: a.get("public_reactions_count", 0))
    author = (best.get("user") or {}).get("name", "")
    return {
        "type": "article",
        "title": best["title"],
        "url": best["url"],
        "description": f"{author} • {best.get('public_reactions_count', 0)} reactions • Dev.to",
    }


def article_fallback(query: str, reason: str) -> dict:
    return {
        "type": "article",
        "title": f"Dev.to search: {query}",
        "url": f"https://dev.to/search?q={quote_plus(query)}",
        "error": reason,
    }


def public_keys(keys: list[str]) -> list[str]:
    """Keys for a lookup that also works without credentials."""
    return keys or [ANONYMOUS]
