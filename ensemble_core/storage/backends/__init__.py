"""
Memory log backends.

Available backends:
- JsonFileMemoryLog: JSON documents on local disk
- SqliteMemoryLog: SQLite database via aiosqlite
"""

from .json_file import JsonFileMemoryLog
from .sqlite import SqliteMemoryLog

__all__ = ['JsonFileMemoryLog', 'SqliteMemoryLog']
