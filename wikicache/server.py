import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastmcp import FastMCP

from wikicache.clients.wikipedia import WikiApiClient
from wikicache.storage.database import DatabaseManager
from wikicache.storage.durable import SqliteSurface

logger = logging.getLogger(__name__)

_wiki: WikiApiClient | None = None


def get_wiki() -> WikiApiClient:
    """Get the current WikiApiClient instance. Raises if not initialized."""
    if _wiki is None:
        raise RuntimeError("Wiki client not initialized. Server lifespan has not started.")
    return _wiki


def _reset_wiki() -> None:
    """Clear the module-level client reference. Used in tests."""
    global _wiki  # noqa: PLW0603
    _wiki = None


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """Manage async resources (durable store, caches) for the server lifecycle."""
    global _wiki  # noqa: PLW0603
    from wikicache.config import get_settings

    settings = get_settings()

    db: DatabaseManager | None = None
    surface: SqliteSurface | None = None
    if settings.cache_durable_mirror:
        db = DatabaseManager(settings.cache_db_path)
        await db.initialize()
        surface = SqliteSurface(db)
        logger.info("Durable cache mirror enabled at %s", settings.cache_db_path)

    _wiki = WikiApiClient(surface=surface, settings=settings)
    await _wiki.initialize()
    logger.info("Wiki caches initialized")

    try:
        yield {"wiki": _wiki, "db": db}
    finally:
        await _wiki.close()
        _wiki = None
        if db is not None:
            await db.close()
        logger.info("Wiki caches closed")


mcp = FastMCP("wiki-cache", lifespan=app_lifespan)


def setup_logging(log_level: str, data_dir: Path) -> None:
    """Configure logging with file rotation and console output.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        data_dir: Base data directory: logs go to data_dir/logs/server.log.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler: exact type check avoids matching subclasses (FileHandler, etc.)
    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    # File handler with rotation
    log_dir = data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "server.log"

    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def initialize() -> FastMCP:
    """Set up directories, logging, and register tools. Returns the MCP server."""
    from wikicache.config import get_settings

    settings = get_settings()

    # Ensure runtime directories exist
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / "logs").mkdir(exist_ok=True)

    # Logging
    setup_logging(settings.log_level, settings.data_dir)

    # Register tools
    from wikicache.tools.cache_admin import register_cache_tools
    from wikicache.tools.wiki import register_wiki_tools

    register_wiki_tools(mcp)
    register_cache_tools(mcp)

    logger.info("Wiki cache MCP server initialized")
    return mcp
