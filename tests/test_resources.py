"""Tests for assembling a day's supporting links."""
from unittest.mock import MagicMock, patch

import pytest

from skillloop.config import Settings
from skillloop.errors import ProviderFailure
from skillloop.keypool import ANONYMOUS, ResourcePool
from skillloop.resources import ResourceFetcher, ResourcePools

WIKI = {"type": "wikipedia", "title": "Wikipedia: React", "url": "https://en.wikipedia.org/wiki/React"}
ARTICLE = {"type": "article", "title": "Hooks deep dive", "url": "https://dev.to/c"}


def _video(video_id):
    return {"type": "youtube", "videoId": video_id, "title": video_id,
            "url": f"https://www.youtube.com/watch?v={video_id}"}


@pytest.fixture
def fetcher(clock):
    pools = ResourcePools(
        video=ResourcePool("youtube", ["yt-key"], clock=clock),
        encyclopedia=ResourcePool("wikipedia", [ANONYMOUS], clock=clock),
        article=ResourcePool("devto", [ANONYMOUS], clock=clock),
    )
    return ResourceFetcher(pools, workers=2)


def test_pools_from_settings_use_anonymous_for_public_apis():
    pools = ResourcePools.from_settings(Settings(youtube_keys=["a", "b"]))
    assert pools.video.size == 2
    assert [c.key for c in pools.encyclopedia.credentials()] == [ANONYMOUS]
    assert [c.key for c in pools.article.credentials()] == [ANONYMOUS]


def test_assemble_one_video_per_keyword_then_wiki_and_article(fetcher):
    videos = {"react hooks": [_video("v1"), _video("v2")], "use state": [_video("v3")]}
    with patch("skillloop.lookups.search_videos", side_effect=lambda key, q, *a, **kw: videos[q]), \
            patch("skillloop.lookups.search_wikipedia", return_value=WIKI), \
            patch("skillloop.lookups.search_articles", return_value=ARTICLE):
        resources = fetcher.assemble("React", ["react hooks", "use state"])
    assert [r["url"] for r in resources] == [
        "https://www.youtube.com/watch?v=v1",
        "https://www.youtube.com/watch?v=v3",
        WIKI["url"],
        ARTICLE["url"],
    ]


def test_assemble_dedupes_by_url(fetcher):
    with patch("skillloop.lookups.search_videos", return_value=[_video("same")]), \
            patch("skillloop.lookups.search_wikipedia", return_value=WIKI), \
            patch("skillloop.lookups.search_articles", return_value=ARTICLE):
        resources = fetcher.assemble("React", ["hooks", "react hooks"])
    assert [r["type"] for r in resources] == ["youtube", "wikipedia", "article"]


def test_assemble_uses_topic_without_keywords(fetcher):
    with patch("skillloop.lookups.search_videos", return_value=[_video("v1")]) as mock_videos, \
            patch("skillloop.lookups.search_wikipedia", return_value=WIKI), \
            patch("skillloop.lookups.search_articles", return_value=ARTICLE):
        fetcher.assemble("React basics", [])
    assert mock_videos.call_args.args[1] == "React basics"


def test_video_lookup_without_keys_degrades(clock):
    pools = ResourcePools(
        video=ResourcePool("youtube", [], clock=clock),
        encyclopedia=ResourcePool("wikipedia", [ANONYMOUS], clock=clock),
        article=ResourcePool("devto", [ANONYMOUS], clock=clock),
    )
    fetcher = ResourceFetcher(pools)
    with patch("skillloop.lookups.search_wikipedia", return_value=WIKI), \
            patch("skillloop.lookups.search_articles", return_value=ARTICLE):
        resources = fetcher.assemble("React", ["react hooks"])
    assert resources[0]["type"] == "youtube"
    assert "error" in resources[0]
    assert "search_query=react+hooks" in resources[0]["url"]
    assert len(resources) == 3


def test_encyclopedia_falls_back_to_english(fetcher):
    def wiki(key, query, lang, timeout=10.0):
        return None if lang == "ko" else WIKI

    with patch("skillloop.lookups.search_wikipedia", side_effect=wiki) as mock_wiki:
        page = fetcher.encyclopedia("React", "ko")
    assert page == WIKI
    assert [c.args[2] for c in mock_wiki.call_args_list] == ["ko", "en"]


def test_encyclopedia_failure_becomes_search_link(fetcher):
    with patch("skillloop.lookups.search_wikipedia", side_effect=ProviderFailure("HTTP 503")):
        page = fetcher.encyclopedia("React", "en")
    assert page["url"] == "https://en.wikipedia.org/w/index.php?search=React"
    assert page["error"] == "HTTP 503"


def test_article_not_found_becomes_search_link(fetcher):
    with patch("skillloop.lookups.search_articles", return_value=None):
        link = fetcher.article("React hooks")
    assert link["url"] == "https://dev.to/search?q=React+hooks"
    assert link["error"] == "no article found"


def _ok_response(payload):
    resp = MagicMock()
    resp.ok = True
    resp.status_code = 200
    resp.json.return_value = payload
    return resp


def test_article_with_unexpected_body_becomes_search_link(fetcher):
    body = {"error": "unexpected", "status": 200}
    with patch("skillloop.lookups.requests.get", return_value=_ok_response(body)):
        link = fetcher.article("react hooks")
    assert link["url"] == "https://dev.to/search?q=react+hooks"
    assert "list was expected" in link["error"]


def test_encyclopedia_with_malformed_results_becomes_search_link(fetcher):
    body = {"query": {"search": [{"snippet": "no title here"}]}}
    with patch("skillloop.lookups.requests.get", return_value=_ok_response(body)):
        page = fetcher.encyclopedia("React", "en")
    assert page["url"] == "https://en.wikipedia.org/w/index.php?search=React"
    assert page["error"].startswith("Unexpected Wikipedia response")
