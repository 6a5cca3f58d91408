"""
Database infrastructure with SQLite and async support.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

import aiosqlite


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_MIGRATIONS = [
    """
    CREATE TABLE IF NOT EXISTS crawl_results (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL,
        data TEXT NOT NULL,
        data_type TEXT NOT NULL,
        confidence REAL NOT NULL,
        semantic_quality REAL,
        coherence_score REAL,
        context_score REAL,
        anomaly_score REAL,
        extraction_time REAL,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
        metadata TEXT,
        vector_id INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_url ON crawl_results(url)",
    "CREATE INDEX IF NOT EXISTS idx_confidence ON crawl_results(confidence)",
    "CREATE INDEX IF NOT EXISTS idx_timestamp ON crawl_results(timestamp)",
    """
    CREATE TABLE IF NOT EXISTS vectors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        vector_data BLOB NOT NULL,
        dimension INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS learning_stats (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        agent_name TEXT NOT NULL,
        success_rate REAL,
        adaptation_level REAL,
        strategy TEXT,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: str = "data/crawler_advanced.db"):
        # Handle SQLite URL format if provided
        if db_path.startswith("sqlite"):
            # Handle sqlite+aiosqlite:///path format
            if "///" in db_path:
                actual_path = db_path.split("///")[-1]
            else:
                actual_path = db_path.split("//")[-1]
            self.db_path = Path(actual_path)
        else:
            self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Connect to the database and run migrations."""
        if self._connection:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Open connection with a longer busy timeout
        self._connection = await aiosqlite.connect(self.db_path, timeout=30)
        self._connection.row_factory = aiosqlite.Row
        # Improve concurrency: use WAL journal mode and set busy timeout (ms)
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA busy_timeout=30000;")
        await self._run_migrations()
        logger.info(f"Database initialized: {self.db_path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def execute(self, sql: str, params: Tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        if not self._connection:
            await self.connect()
        return await self._connection.execute(sql, params)

    async def write(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[int]:
        """Execute a write and commit it; returns the new row id.

        Writes from concurrent tasks are serialized so that each statement
        is committed on its own.
        """
        async with self._write_lock:
            cursor = await self.execute(sql, params)
            await self._connection.commit()
            return cursor.lastrowid

    async def fetch_one(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[aiosqlite.Row]:
        """Fetch one row."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchone()

    async def fetch_all(self, sql: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        cursor = await self.execute(sql, params)
        return await cursor.fetchall()

    async def _run_migrations(self) -> None:
        """Run database migrations."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        row = await (await self._connection.execute(
            "SELECT MAX(version) AS version FROM migrations"
        )).fetchone()
        if row["version"] is not None and row["version"] >= SCHEMA_VERSION:
            return

        for statement in _MIGRATIONS:
            await self._connection.execute(statement)
        await self._connection.execute(
            "INSERT OR IGNORE INTO migrations (version) VALUES (?)", (SCHEMA_VERSION,)
        )
        await self._connection.commit()
