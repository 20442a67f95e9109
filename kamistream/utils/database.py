import os
from typing import Dict, Optional

from databases import Database

from kamistream.config.settings import settings
from kamistream.utils.logger import database_logger

# ===========================
# Database Instance
# ===========================
database = Database(settings.get_database_url())

# ===========================
# Database Setup
# ===========================
async def setup_database(db: Database = database):
    try:
        database_logger.info(f"Setup {settings.DATABASE_TYPE} database")
        if settings.DATABASE_TYPE == "sqlite":
            os.makedirs(os.path.dirname(settings.DATABASE_PATH) or ".", exist_ok=True)
            if not os.path.exists(settings.DATABASE_PATH):
                open(settings.DATABASE_PATH, "a").close()

        await db.connect()
        database_logger.info("Connected")

        await db.execute("CREATE TABLE IF NOT EXISTS db_version (id INTEGER PRIMARY KEY CHECK (id = 1), version TEXT)")
        current_version = await db.fetch_val("SELECT version FROM db_version WHERE id = 1")

        if current_version != settings.DATABASE_VERSION:
            if settings.DATABASE_TYPE == "sqlite":
                await db.execute("DROP TABLE IF EXISTS kv_store")
                await db.execute("INSERT OR REPLACE INTO db_version VALUES (1, :version)", {"version": settings.DATABASE_VERSION})
            else:
                await db.execute("DROP TABLE IF EXISTS kv_store CASCADE")
                await db.execute(
                    "INSERT INTO db_version VALUES (1, :version) ON CONFLICT (id) DO UPDATE SET version = :version",
                    {"version": settings.DATABASE_VERSION}
                )

        await db.execute("CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

        if settings.DATABASE_TYPE == "sqlite":
            await db.execute("PRAGMA busy_timeout=30000")
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")

        database_logger.info("Setup completed")

    except Exception as e:
        database_logger.error(f"Setup failed: {type(e).__name__}")
        raise

# ===========================
# Database Teardown
# ===========================
async def teardown_database(db: Database = database):
    try:
        await db.disconnect()
        database_logger.info("Disconnected")
    except Exception as e:
        database_logger.error(f"Failed to disconnect: {type(e).__name__}")


# ===========================
# Database Key-Value Store
# ===========================
class DatabaseStore:
    """String-keyed persistence backed by the ``kv_store`` table."""

    def __init__(self, db: Database = database):
        self.db = db

    async def get(self, key: str) -> Optional[str]:
        return await self.db.fetch_val("SELECT value FROM kv_store WHERE key = :key", {"key": key})

    async def set(self, key: str, value: str):
        if settings.DATABASE_TYPE == "sqlite":
            query = "INSERT OR REPLACE INTO kv_store (key, value) VALUES (:key, :value)"
        else:
            query = """INSERT INTO kv_store (key, value) VALUES (:key, :value)
                       ON CONFLICT (key) DO UPDATE SET value = :value"""
        await self.db.execute(query, {"key": key, "value": value})

    async def remove(self, key: str):
        await self.db.execute("DELETE FROM kv_store WHERE key = :key", {"key": key})

    async def remove_prefix(self, prefix: str) -> int:
        rows = await self.db.fetch_all("SELECT key FROM kv_store WHERE key LIKE :pattern", {"pattern": f"{prefix}%"})
        await self.db.execute("DELETE FROM kv_store WHERE key LIKE :pattern", {"pattern": f"{prefix}%"})
        return len(rows)


# ===========================
# In-Memory Key-Value Store
# ===========================
class MemoryStore:
    """Same interface as ``DatabaseStore``, held in a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str):
        self.data[key] = value

    async def remove(self, key: str):
        self.data.pop(key, None)

    async def remove_prefix(self, prefix: str) -> int:
        keys = [key for key in self.data if key.startswith(prefix)]
        for key in keys:
            del self.data[key]
        return len(keys)


# ===========================
# Global Store Instance
# ===========================
kv_store = DatabaseStore(database)
