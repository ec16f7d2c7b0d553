"""
Search Providers

    DuckDuckGoSearchProvider: Keyless HTML web search
    VideoSearchClient: Site-scoped video search with id extraction
"""

from cortex_kg.providers.search.duckduckgo import DuckDuckGoSearchProvider
from cortex_kg.providers.search.video import VideoSearchClient, extract_video_id

__all__ = ["DuckDuckGoSearchProvider", "VideoSearchClient", "extract_video_id"]
