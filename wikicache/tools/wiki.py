"""MCP tools for cached Wikipedia lookups."""

import logging

from fastmcp import FastMCP

from wikicache.clients.resilience import APIError
from wikicache.server import get_wiki

logger = logging.getLogger(__name__)

# Upper bound on links returned by a single tool call
_MAX_TOOL_LINKS = 100
_MAX_GRAPH_NODES = 50


def register_wiki_tools(mcp: FastMCP) -> None:
    """Register Wikipedia lookup tools on the MCP server."""

    @mcp.tool
    async def wiki_suggestions(query: str) -> str:
        """Suggest Wikipedia article titles for a partial query.

        Args:
            query: Search text, at least two characters.

        Returns:
            Numbered list of titles with short descriptions.
        """
        suggestions = await get_wiki().fetch_suggestions(query)
        if not suggestions:
            return "Type at least two characters to get suggestions."
        lines = [f"Suggestions for '{query.strip()}':"]
        for idx, s in enumerate(suggestions, 1):
            lines.append(f"{idx}. {s.title} - {s.description}")
        return "\n".join(lines)

    @mcp.tool
    async def wiki_summary(title: str) -> str:
        """Show the summary of a Wikipedia article.

        Args:
            title: Article title, e.g. "Graph theory".

        Returns:
            Title, URL and lead-section extract.
        """
        try:
            summary = await get_wiki().fetch_summary(title)
        except APIError as exc:
            logger.warning("Summary lookup failed for %r: %s", title, exc)
            return f"Could not fetch a summary for '{title}': {exc}"
        if summary is None:
            return "Please provide an article title."

        lines = [summary.title]
        if summary.url:
            lines.append(summary.url)
        if summary.extract:
            lines.append("")
            lines.append(summary.extract)
        return "\n".join(lines)

    @mcp.tool
    async def wiki_links(title: str, max_links: int = 20, source_order: bool = False) -> str:
        """List articles linked from a Wikipedia article.

        Args:
            title: Article title.
            max_links: Maximum links to return (default 20, max 100).
            source_order: True to list links in the order they appear in
                          the article instead of alphabetically.

        Returns:
            Numbered list of linked article titles.
        """
        max_links = max(1, min(max_links, _MAX_TOOL_LINKS))
        wiki = get_wiki()
        try:
            if source_order:
                links = await wiki.fetch_links_in_source_order(title, max_links)
            else:
                links = await wiki.fetch_links(title, max_links)
        except APIError as exc:
            logger.warning("Link lookup failed for %r: %s", title, exc)
            return f"Could not fetch links for '{title}': {exc}"

        if not links:
            return f"No links found for '{title}'."
        order = "source order" if source_order else "alphabetical"
        lines = [f"Links from '{title}' ({order}):"]
        lines.extend(f"{idx}. {link}" for idx, link in enumerate(links, 1))
        return "\n".join(lines)

    @mcp.tool
    async def wiki_graph(query: str, max_nodes: int = 12, strategy: str = "alphabetical") -> str:
        """Build a one-hop link graph around a Wikipedia article.

        Args:
            query: Article title or search text.
            max_nodes: Linked articles to include (default 12, max 50;
                       0 returns only the central article).
            strategy: How linked articles are chosen: "alphabetical",
                      "link-order" or "random".

        Returns:
            The central article followed by its edges, one per line.
        """
        max_nodes = max(0, min(max_nodes, _MAX_GRAPH_NODES))
        try:
            graph = await get_wiki().fetch_graph(query, max_nodes, strategy)
        except ValueError as exc:
            return f"Could not build a graph for '{query}': {exc}"
        except APIError as exc:
            logger.warning("Graph lookup failed for %r: %s", query, exc)
            return f"Could not build a graph for '{query}': {exc}"

        central = graph.nodes[0]
        lines = [f"{central.title} ({central.url})", f"{len(graph.links)} linked articles:"]
        lines.extend(f"{link.source} -> {link.target}" for link in graph.links)
        return "\n".join(lines)
