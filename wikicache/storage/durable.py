"""Durable key-value surfaces used to warm-start caches across runs."""

from typing import Protocol, runtime_checkable

from wikicache.storage.database import DatabaseManager


@runtime_checkable
class DurableSurface(Protocol):
    """Process-wide string key-value store, partitioned by key prefix."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def keys(self, prefix: str) -> list[str]:
        ...


class MemorySurface:
    """Dict-backed surface. Survives cache instances, not processes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)

    async def keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class SqliteSurface:
    """Surface stored in the ``durable_kv`` table.

    Args:
        db: An initialized DatabaseManager (shares its connection).
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def get(self, key: str) -> str | None:
        row = await self.db.fetch_one("SELECT value FROM durable_kv WHERE key = ?", (key,))
        if row is None:
            return None
        return row["value"]

    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key* (upsert)."""
        await self.db.execute(
            "INSERT INTO durable_kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = CURRENT_TIMESTAMP",
            (key, value),
        )

    async def delete(self, key: str) -> None:
        await self.db.execute("DELETE FROM durable_kv WHERE key = ?", (key,))

    async def keys(self, prefix: str) -> list[str]:
        # Prefixes may contain LIKE wildcards ('%', '_')
        rows = await self.db.fetch_all(
            "SELECT key FROM durable_kv WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        )
        return [r["key"] for r in rows]
