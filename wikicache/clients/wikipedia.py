"""Wikipedia API client for suggestions, summaries, links and wikitext.

Every remote call goes through a namespaced :class:`Cache` via
``get_or_set``, so repeated or concurrent lookups of the same title hit the
network once.
"""

import logging
import re
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from wikicache.cache import Cache
from wikicache.clients.node_filter import LINK_ORDER, NodeFilter
from wikicache.clients.resilience import (
    APIError,
    CircuitBreaker,
    TransientAPIError,
    check_response,
    resilient_request,
)
from wikicache.config import Settings, get_settings
from wikicache.storage.durable import DurableSurface

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_API_LINKS = 500

# Link targets outside the article namespace
_EXCLUDED_PREFIXES = (
    "File:", "Image:", "Category:", "Template:", "Help:", "Wikipedia:",
    "User:", "Talk:", "Special:", "Media:", "Portal:", "Book:", "Draft:",
)

# [[Target]], [[Target|label]], [[Target#Section]]: captures Target
_WIKILINK_RE = re.compile(r"\[\[([^|\]#]+)(?:[|\]#][^\]]*)?\]\]")


class WikiSuggestion(BaseModel):
    title: str
    description: str


class WikiSummary(BaseModel):
    title: str
    extract: str = ""
    url: str | None = None
    thumbnail: dict | None = None
    originalimage: dict | None = None


class GraphNode(BaseModel):
    id: str
    title: str
    description: str = ""
    url: str
    is_central: bool = False


class GraphLink(BaseModel):
    source: str
    target: str


class WikiGraph(BaseModel):
    """One-hop graph around a central article. Layout is left to the caller."""

    nodes: list[GraphNode]
    links: list[GraphLink]
    page_data: WikiSummary


def is_valid_article_link(title: str) -> bool:
    """True if *title* looks like a link to a regular article."""
    if title.startswith(_EXCLUDED_PREFIXES):
        return False
    if len(title) < 2:
        return False
    return "\n" not in title and "\t" not in title


def extract_links_from_wikitext(wikitext: str, max_links: int = 100) -> list[str]:
    """Return article link targets in source order, deduplicated."""
    links: list[str] = []
    seen: set[str] = set()
    for match in _WIKILINK_RE.finditer(wikitext):
        if len(links) >= max_links:
            break
        title = match.group(1).strip()
        if title in seen:
            continue
        if is_valid_article_link(title):
            links.append(title)
            seen.add(title)
    return links


def placeholder_suggestions(query: str) -> list[WikiSuggestion]:
    """Deterministic suggestions returned when the search API is unreachable."""
    return [
        WikiSuggestion(title=f"{query} (Test)", description="Test suggestion - API may be blocked"),
        WikiSuggestion(title=f"{query} Article", description="Another test suggestion"),
        WikiSuggestion(title=f"{query} Page", description="Third test suggestion"),
    ]


def _parse_suggestions(data: Any) -> list[dict]:
    """Parse an OpenSearch response ``[query, titles, descriptions, urls]``."""
    if not isinstance(data, list) or len(data) < 2:
        return []
    titles = data[1] or []
    descriptions = data[2] if len(data) > 2 and data[2] else []
    return [
        {
            "title": title,
            "description": (descriptions[i] if i < len(descriptions) else "") or "Wikipedia article",
        }
        for i, title in enumerate(titles)
    ]


def _parse_summary(data: dict, fallback_title: str) -> dict:
    return {
        "title": data.get("title") or fallback_title,
        "extract": data.get("extract", ""),
        "url": data.get("content_urls", {}).get("desktop", {}).get("page"),
        "thumbnail": data.get("thumbnail"),
        "originalimage": data.get("originalimage"),
    }


class WikiApiClient:
    """Wikipedia client with one cache per data type.

    Args:
        suggestion_limit: Maximum suggestions per query.
        surface: Durable surface; when given, every cache mirrors onto it.
        settings: Settings override (defaults to ``get_settings()``).
        clock: Time source shared by the caches.
        node_filter: Strategy registry used by :meth:`fetch_graph`.
    """

    def __init__(
        self,
        *,
        suggestion_limit: int = 8,
        surface: DurableSurface | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        node_filter: NodeFilter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.suggestion_limit = suggestion_limit
        self._breaker = CircuitBreaker("wikipedia", fail_max=5, reset_timeout=60.0)
        self.node_filter = node_filter or NodeFilter()

        common: dict[str, Any] = {
            "surface": surface,
            "clock": clock,
            "use_durable_mirror": surface is not None,
            "sweep_interval": self.settings.cache_sweep_interval,
        }
        self.summary_cache = Cache("wiki-summaries", max_size=100, ttl=300, **common)
        self.suggestions_cache = Cache("wiki-suggestions", max_size=50, ttl=600, **common)
        self.links_cache = Cache("wiki-links", max_size=75, ttl=600, **common)
        # Wikitext is the most expensive payload; keep it longer
        self.wikitext_cache = Cache("wiki-wikitext", max_size=25, ttl=900, **common)

    @property
    def caches(self) -> dict[str, Cache]:
        return {
            "summaries": self.summary_cache,
            "suggestions": self.suggestions_cache,
            "links": self.links_cache,
            "wikitext": self.wikitext_cache,
        }

    async def initialize(self) -> None:
        """Warm-start every cache and start their expiration sweeps."""
        for cache in self.caches.values():
            await cache.initialize()

    async def close(self) -> None:
        for cache in self.caches.values():
            await cache.destroy()

    async def __aenter__(self) -> "WikiApiClient":
        await self.initialize()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.close()

    # ── HTTP ──────────────────────────────────────────────────────────────

    async def _get_json(self, url: str, params: dict | None = None) -> Any:
        """GET *url* through the circuit breaker, with retries."""
        return await self._breaker.call(lambda: self._request_json(url, params))

    @resilient_request
    async def _request_json(self, url: str, params: dict | None) -> Any:
        headers = {"User-Agent": self.settings.user_agent}
        try:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout, headers=headers) as client:
                response = await client.get(url, params=params)
        except httpx.TransportError as exc:
            raise TransientAPIError(f"Network error for {url}: {exc}") from exc

        return check_response(response)

    # ── Lookups ───────────────────────────────────────────────────────────

    async def fetch_suggestions(self, query: str) -> list[WikiSuggestion]:
        """Autocomplete suggestions via the OpenSearch API.

        Queries shorter than two characters return ``[]`` without a request.
        If the API fails, placeholder suggestions are returned (not cached).
        """
        q = query.strip()
        if len(q) < MIN_QUERY_LENGTH:
            return []

        async def load() -> list[dict]:
            data = await self._get_json(
                self.settings.wiki_api_url,
                params={
                    "action": "opensearch",
                    "search": q,
                    "limit": self.suggestion_limit,
                    "namespace": 0,
                    "format": "json",
                },
            )
            return _parse_suggestions(data)

        try:
            rows = await self.suggestions_cache.get_or_set(q, load)
        except APIError as exc:
            logger.debug("Suggestion lookup failed for %r: %s", q, exc)
            return placeholder_suggestions(q)
        return [WikiSuggestion.model_validate(r) for r in rows]

    async def fetch_summary(self, title: str) -> WikiSummary | None:
        """Page summary for an article title. Failures propagate.

        Returns:
            The summary, or None for a blank title.
        """
        key = title.strip()
        if not key:
            return None

        async def load() -> dict:
            url = f"{self.settings.wiki_rest_url}/page/summary/{quote(key.replace(' ', '_'), safe='')}"
            return _parse_summary(await self._get_json(url), key)

        data = await self.summary_cache.get_or_set(key, load)
        return WikiSummary.model_validate(data)

    async def fetch_links(self, title: str, max_links: int = 100) -> list[str]:
        """Outgoing article links of *title* (API order, alphabetical)."""

        async def load() -> list[str]:
            data = await self._get_json(
                self.settings.wiki_api_url,
                params={
                    "action": "query",
                    "format": "json",
                    "prop": "links",
                    "titles": title,
                    "pllimit": min(max(max_links, 100), MAX_API_LINKS),
                    "plnamespace": 0,
                },
            )
            pages = (data.get("query") or {}).get("pages")
            if not pages:
                return []
            page = next(iter(pages.values()))
            if not page or "missing" in page:
                return []
            links = page.get("links") or []
            return [link["title"] for link in links[:max_links] if link.get("title")]

        return await self.links_cache.get_or_set(f"{title}:{max_links}", load)

    async def fetch_wikitext(self, title: str) -> str:
        """Raw wikitext of *title*.

        Raises:
            MediaWikiError: If the API answers with an error object, e.g. a
                missing page.
        """

        async def load() -> str:
            data = await self._get_json(
                self.settings.wiki_api_url,
                params={"action": "parse", "format": "json", "page": title, "prop": "wikitext"},
            )
            return (data.get("parse") or {}).get("wikitext", {}).get("*", "")

        return await self.wikitext_cache.get_or_set(title, load)

    async def fetch_links_in_source_order(self, title: str, max_links: int = 100) -> list[str]:
        """Links in the order they appear in the article's wikitext.

        Falls back to :meth:`fetch_links` when the wikitext is unavailable.
        """

        async def load() -> list[str]:
            try:
                wikitext = await self.fetch_wikitext(title)
            except APIError as exc:
                logger.warning("Failed to fetch source-order links for %s: %s", title, exc)
                return await self.fetch_links(title, max_links)
            return extract_links_from_wikitext(wikitext, max_links)

        return await self.links_cache.get_or_set(f"source:{title}:{max_links}", load)

    def article_url(self, title: str) -> str:
        return f"{self.settings.wiki_article_url}/{quote(title.replace(' ', '_'), safe='')}"

    async def fetch_graph(
        self, query: str, max_nodes: int = 12, filter_strategy: str = "alphabetical"
    ) -> WikiGraph:
        """Build a one-hop graph around *query*: the article plus its links.

        The central article is resolved through :meth:`fetch_summary`, so a
        redirect yields the canonical title. ``link-order`` reads links from
        the wikitext; other strategies over-fetch from the links API and let
        :attr:`node_filter` choose. A failed link lookup leaves only the
        central node.

        Raises:
            ValueError: If *query* is blank.
            APIError: If the central article cannot be fetched.
        """
        if not query.strip():
            raise ValueError("Empty query")

        page = await self.fetch_summary(query)
        if page is None:
            raise ValueError("Article not found")
        central = page.title or query.strip()

        linked: list[str] = []
        if max_nodes > 0:
            try:
                if filter_strategy == LINK_ORDER:
                    linked = await self.fetch_links_in_source_order(central, max_nodes)
                else:
                    candidates = await self.fetch_links(central, max(max_nodes * 2, 50))
                    linked = self.node_filter.apply_filter(candidates, max_nodes, filter_strategy)
            except APIError as exc:
                logger.warning("Failed to fetch links for %s with strategy %s: %s", central, filter_strategy, exc)
        linked = [t for t in linked if t != central]

        nodes = [
            GraphNode(
                id=central,
                title=page.title,
                description=page.extract,
                url=page.url or self.article_url(central),
                is_central=True,
            ),
            *(GraphNode(id=t, title=t, url=self.article_url(t)) for t in linked),
        ]
        links = [GraphLink(source=central, target=t) for t in linked]
        return WikiGraph(nodes=nodes, links=links, page_data=page)

    # ── Cache administration ──────────────────────────────────────────────

    def get_cache_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            name: cache.get_stats().model_dump() for name, cache in self.caches.items()
        }
        stats["total_memory_estimate"] = sum(s["memory_estimate"] for s in stats.values())
        return stats

    async def clear_all_caches(self) -> int:
        """Clear every cache. Returns the total number of entries removed."""
        total = 0
        for cache in self.caches.values():
            total += await cache.clear()
        logger.info("Cleared %d cached Wikipedia entries", total)
        return total
