"""
SQLite implementation of the long-term memory log.

This module stores memory records in a single table whose autoincrement id gives
insertion order, which is what every newest-first query sorts on.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import aiosqlite

from ensemble_core.storage.interfaces.memory_log_interface import MemoryLogInterface, MemoryKey


class SqliteMemoryLog(MemoryLogInterface):
    """
    SQLite-based implementation of the MemoryLogInterface.
    """

    def __init__(self, database_path: str = "./data/memory.db"):
        """
        Initialize SqliteMemoryLog with database path.

        Args:
            database_path: Path to the SQLite database file
        """
        self.database_path = Path(database_path)
        self.logger = logging.getLogger(__name__)

        # Connection state
        self._connected = False
        self._db_connection: Optional[aiosqlite.Connection] = None
        self._connect_lock: Optional[asyncio.Lock] = None

    # Connection Management
    async def connect(self) -> None:
        """
        Establish connection to the SQLite database.

        Concurrent first callers (e.g. cold-start reads during an orchestration)
        share one connection.
        """
        if self._connected:
            return

        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()

        async with self._connect_lock:
            if self._connected:
                return

            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._db_connection = await aiosqlite.connect(str(self.database_path))
            await self._create_tables()
            self._connected = True

        self.logger.info(f"Connected to SQLite memory log at {self.database_path}")

    async def close(self) -> None:
        """Close connection to the SQLite database."""
        if not self._connected:
            return

        if self._db_connection:
            await self._db_connection.close()
            self._db_connection = None

        self._connected = False
        self.logger.info("Disconnected from SQLite memory log")

    async def _create_tables(self):
        await self._db_connection.execute(
            """
            CREATE TABLE IF NOT EXISTS memory_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                persona_id TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                timestamp REAL,
                properties TEXT
            )
        """
        )
        await self._db_connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_memory_entries_key
            ON memory_entries (persona_id, conversation_id, id)
        """
        )
        await self._db_connection.execute(
            """
            CREATE TABLE IF NOT EXISTS orchestrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL,
                record TEXT NOT NULL
            )
        """
        )
        await self._db_connection.commit()

    # Memory entries
    async def append(self, key: MemoryKey, record: Dict[str, Any]) -> None:
        await self.connect()

        core_fields = ("role", "content", "timestamp")
        extra = {k: v for k, v in record.items() if k not in core_fields}

        try:
            await self._db_connection.execute(
                """
                INSERT INTO memory_entries
                    (persona_id, conversation_id, role, content, timestamp, properties)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    key.persona_id,
                    key.conversation_id,
                    record["role"],
                    record["content"],
                    record.get("timestamp"),
                    json.dumps(extra) if extra else None,
                ),
            )
            await self._db_connection.commit()
        except aiosqlite.Error:
            await self._db_connection.rollback()
            raise

        self.logger.debug(f"Appended memory record for {key}")

    async def query_recent(self, key: MemoryKey, limit: int) -> List[Dict[str, Any]]:
        await self.connect()

        if limit <= 0:
            return []

        cursor = await self._db_connection.execute(
            """
            SELECT role, content, timestamp, properties
            FROM memory_entries
            WHERE persona_id = ? AND conversation_id = ?
            ORDER BY id DESC
            LIMIT ?
        """,
            (key.persona_id, key.conversation_id, limit),
        )
        rows = await cursor.fetchall()

        records = []
        for role, content, timestamp, properties in rows:
            record = {"role": role, "content": content, "timestamp": timestamp}
            if properties:
                record.update(json.loads(properties))
            records.append(record)
        return records

    # Audit
    async def record_orchestration(self, conversation_id: str, record: Dict[str, Any]) -> None:
        await self.connect()

        await self._db_connection.execute(
            "INSERT INTO orchestrations (conversation_id, record) VALUES (?, ?)",
            (conversation_id, json.dumps(record, default=str)),
        )
        await self._db_connection.commit()
        self.logger.debug(f"Recorded orchestration for conversation {conversation_id}")

    async def list_orchestrations(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Audit records for a conversation, oldest first."""
        await self.connect()

        cursor = await self._db_connection.execute(
            "SELECT record FROM orchestrations WHERE conversation_id = ? ORDER BY id",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [json.loads(row[0]) for row in rows]
