"""
JSON file implementation of the long-term memory log.

All records live in memory while connected and the whole file is rewritten on every
append. Ideal for development, testing, and single-process deployments.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Any, List

from ensemble_core.storage.interfaces.memory_log_interface import MemoryLogInterface, MemoryKey


class JsonFileMemoryLog(MemoryLogInterface):
    """
    JSON file-based implementation of the MemoryLogInterface.

    Memory records are stored in ``memory.json`` keyed by ``persona/conversation``;
    orchestration audit records are stored in ``orchestrations.json`` keyed by
    conversation.
    """

    def __init__(self, directory: str = "./data/memory", pretty_print: bool = True):
        """
        Initialize JsonFileMemoryLog with directory and formatting options.

        Args:
            directory: Directory path to store JSON files
            pretty_print: Whether to format JSON files for readability
        """
        self.directory = Path(directory)
        self.pretty_print = pretty_print
        self.logger = logging.getLogger(__name__)

        # File paths
        self.memory_file = self.directory / "memory.json"
        self.orchestrations_file = self.directory / "orchestrations.json"

        self._entries: Dict[str, List[Dict[str, Any]]] = {}
        self._orchestrations: Dict[str, List[Dict[str, Any]]] = {}

        self._connected = False

    # Connection Management
    async def connect(self) -> None:
        """Create the directory and load existing records."""
        if self._connected:
            return

        self.directory.mkdir(parents=True, exist_ok=True)
        self._entries = self._read_file(self.memory_file)
        self._orchestrations = self._read_file(self.orchestrations_file)

        self._connected = True
        self.logger.info(
            f"Connected to JSON memory log at {self.directory} "
            f"({sum(len(v) for v in self._entries.values())} entries)"
        )

    async def close(self) -> None:
        """Close connection to the JSON file storage."""
        if not self._connected:
            return

        self._connected = False
        self.logger.info("Disconnected from JSON memory log")

    def _read_file(self, path: Path) -> Dict[str, List[Dict[str, Any]]]:
        if not path.exists():
            return {}
        with open(path, 'r') as f:
            return json.load(f)

    def _write_file(self, path: Path, data: Dict[str, Any]):
        with open(path, 'w') as f:
            if self.pretty_print:
                json.dump(data, f, indent=2, default=str)
            else:
                json.dump(data, f, default=str)

    # Memory entries
    async def append(self, key: MemoryKey, record: Dict[str, Any]) -> None:
        await self.connect()

        self._entries.setdefault(str(key), []).append(dict(record))
        self._write_file(self.memory_file, self._entries)
        self.logger.debug(f"Appended memory record for {key}")

    async def query_recent(self, key: MemoryKey, limit: int) -> List[Dict[str, Any]]:
        await self.connect()

        if limit <= 0:
            return []
        records = self._entries.get(str(key), [])
        return [dict(record) for record in reversed(records[-limit:])]

    # Audit
    async def record_orchestration(self, conversation_id: str, record: Dict[str, Any]) -> None:
        await self.connect()

        self._orchestrations.setdefault(conversation_id, []).append(dict(record))
        self._write_file(self.orchestrations_file, self._orchestrations)
        self.logger.debug(f"Recorded orchestration for conversation {conversation_id}")

    async def list_orchestrations(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Audit records for a conversation, oldest first."""
        await self.connect()

        return [dict(record) for record in self._orchestrations.get(conversation_id, [])]
