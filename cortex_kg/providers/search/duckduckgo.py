"""
DuckDuckGo Web Search

Queries the keyless HTML endpoint and parses result blocks with
BeautifulSoup. Result links are wrapped in a redirect carrying the real
URL in its `uddg` parameter; those are unwrapped and DuckDuckGo's own links
are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

from cortex_kg.exceptions import TransientServiceError
from cortex_kg.providers.base import SearchProvider
from cortex_kg.types import SearchResult

if TYPE_CHECKING:
    from cortex_kg.config.settings import CortexConfig

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html",
    "Accept-Language": "en-US,en;q=0.9",
}

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def unwrap_redirect(url: str) -> str:
    """Return the target of a DuckDuckGo redirect link, or url unchanged."""
    if "uddg=" not in url:
        return url
    target = parse_qs(urlparse(url).query).get("uddg")
    return target[0] if target and target[0] else url


def parse_results(html: str, max_results: int) -> list[SearchResult]:
    """
    Extract search hits from a DuckDuckGo HTML page.

    Falls back to any external anchor with a meaningful title when no
    structured result blocks are present.
    """
    soup = BeautifulSoup(html, "html.parser")
    results: list[SearchResult] = []

    for block in soup.select("div.result"):
        if len(results) >= max_results:
            break
        link = block.find("a", class_="result__a")
        if link is None:
            continue
        url = unwrap_redirect(str(link.get("href", "")))
        if url.startswith("//"):
            url = f"https:{url}"
        title = link.get_text(" ", strip=True)
        snippet_elem = block.find(class_="result__snippet")
        snippet = snippet_elem.get_text(" ", strip=True) if snippet_elem else ""

        if title and url and "duckduckgo.com" not in url:
            results.append(SearchResult(title=title, url=url, snippet=snippet))

    if results:
        return results

    seen: set[str] = set()
    for link in soup.find_all("a", href=True):
        if len(results) >= max_results:
            break
        url = str(link["href"])
        title = link.get_text(" ", strip=True)
        if (
            url.startswith("http")
            and "duckduckgo.com" not in url
            and len(title) > 5
            and url not in seen
        ):
            seen.add(url)
            results.append(SearchResult(title=title, url=url))

    return results


class DuckDuckGoSearchProvider(SearchProvider):
    """
    Keyless web search.

    Args:
        config: Supplies endpoint and timeout
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        config: "CortexConfig",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = config.search_url
        self._timeout = config.search_timeout
        self._max_retries = config.search_max_retries
        self._retry_delay = config.search_retry_delay
        self._max_retry_delay = config.search_max_retry_delay
        self._transport = transport

    def _backoff(self, attempt: int) -> float:
        return min(self._retry_delay * 2**attempt, self._max_retry_delay)

    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        """
        Search the web.

        Transport errors, 429 and 5xx responses are retried with a capped,
        doubling delay.

        Raises:
            TransientServiceError: On timeout, transport failure, or non-200
                status once retries are exhausted
        """
        logger.info(f"Searching web: {query!r}")
        retries = self._max_retries

        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            headers=_HEADERS,
            follow_redirects=True,
        ) as client:
            for attempt in range(retries + 1):
                try:
                    response = await client.get(self._url, params={"q": query})
                except httpx.TransportError as e:
                    if attempt < retries:
                        logger.info(f"Search attempt {attempt + 1} failed: {e!r}, retrying...")
                        await asyncio.sleep(self._backoff(attempt))
                        continue
                    raise TransientServiceError(f"Web search failed: {e!r}") from e

                if response.status_code in _RETRYABLE_STATUS and attempt < retries:
                    logger.info(
                        f"Search endpoint returned {response.status_code}, retrying..."
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                break

        if response.status_code != 200:
            raise TransientServiceError(
                f"Search endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        return parse_results(response.text, max_results)
