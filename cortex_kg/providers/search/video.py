"""
Video Search

Video search is web search restricted to a video host. Hits that do not
point at an individual video are discarded, and every kept hit carries the
host's video id.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from cortex_kg.types import SearchResult, VideoResult

if TYPE_CHECKING:
    from cortex_kg.providers.base import SearchProvider

VIDEO_URL_MARKERS = ("youtube.com/watch", "youtu.be/", "youtube.com/embed/", "youtube.com/v/")

_VIDEO_ID_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([a-zA-Z0-9_-]{11})"),
)

# Extra hits requested so filtering still leaves enough videos
_OVERFETCH = 3


def extract_video_id(url: str) -> str | None:
    """Return the 11-character video id in url, if any."""
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_video_url(url: str) -> bool:
    return any(marker in url for marker in VIDEO_URL_MARKERS)


def to_video_results(results: list[SearchResult], max_results: int) -> list[VideoResult]:
    """Keep hits on individual videos, attach their ids, truncate."""
    videos: list[VideoResult] = []
    for result in results:
        if not is_video_url(result.url):
            continue
        video_id = extract_video_id(result.url)
        if not video_id:
            continue
        url = f"https:{result.url}" if result.url.startswith("//") else result.url
        videos.append(
            VideoResult(title=result.title, url=url, snippet=result.snippet, video_id=video_id)
        )
        if len(videos) >= max_results:
            break
    return videos


class VideoSearchClient:
    """
    Site-scoped search over a web SearchProvider.

    Args:
        search: Underlying web search
        site_hint: Restriction prepended to every query
    """

    def __init__(self, search: "SearchProvider", site_hint: str = "site:youtube.com") -> None:
        self._search = search
        self._site_hint = site_hint

    async def search(self, query: str, max_results: int = 5) -> list[VideoResult]:
        scoped = f"{self._site_hint} {query}".strip()
        results = await self._search.search(scoped, max_results + _OVERFETCH)
        return to_video_results(results, max_results)
