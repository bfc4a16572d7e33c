"""MCP tools for inspecting and clearing the Wikipedia caches."""

import logging

from fastmcp import FastMCP

from wikicache.server import get_wiki

logger = logging.getLogger(__name__)


def _format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n / (1024 * 1024):.1f} MB"


def register_cache_tools(mcp: FastMCP) -> None:
    """Register cache administration tools on the MCP server."""

    @mcp.tool
    async def cache_stats() -> str:
        """Show hit rate, size and memory estimate for every cache.

        Returns:
            One line per cache plus the total memory estimate.
        """
        stats = get_wiki().get_cache_stats()
        total = stats.pop("total_memory_estimate")

        lines = ["Cache statistics:\n"]
        for name, s in stats.items():
            lines.append(
                f"  {name}: {s['size']}/{s['max_size']} entries, "
                f"{s['hit_rate']:.2f}% hit rate ({s['hits']} hits, {s['misses']} misses), "
                f"{s['evictions']} evictions, {s['errors']} errors, "
                f"~{_format_bytes(s['memory_estimate'])}"
            )
        lines.append(f"\nTotal memory estimate: ~{_format_bytes(total)}")
        return "\n".join(lines)

    @mcp.tool
    async def clear_caches() -> str:
        """Drop every cached Wikipedia response. Hit/miss counters are kept.

        Returns:
            Confirmation with the number of entries removed.
        """
        cleared = await get_wiki().clear_all_caches()
        return f"Cleared {cleared} cached entries."
