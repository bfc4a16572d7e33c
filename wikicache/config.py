from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env file.

    Per-cache sizes and TTLs are fixed by the caches' owners; these settings
    cover what is shared by every cache (durable mirror, sweep interval) and
    the Wikipedia endpoints the caches sit in front of.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Wikipedia endpoints
    wiki_api_url: str = "https://en.wikipedia.org/w/api.php"
    wiki_rest_url: str = "https://en.wikipedia.org/api/rest_v1"
    wiki_article_url: str = "https://en.wikipedia.org/wiki"
    http_timeout: float = 10.0
    user_agent: str = "wiki-cache-mcp/0.1 (https://github.com/wiki-cache-mcp)"

    # Cache engine
    cache_durable_mirror: bool = False
    cache_sweep_interval: float = 60.0

    # Remote hosting: transport and bind address
    mcp_transport: str = "stdio"
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8000

    # Paths & logging: default is <project_root>/data so it works
    # regardless of the process working directory.
    data_dir: Path = Path(__file__).resolve().parent.parent / "data"
    log_level: str = "INFO"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cache_db_path(self) -> Path:
        return self.data_dir / "cache.db"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached Settings singleton. Created on first call."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached settings. Used in tests."""
    global _settings  # noqa: PLW0603
    _settings = None
