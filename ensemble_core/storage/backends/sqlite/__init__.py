"""
SQLite storage backend.
"""

from .sqlite_memory_log import SqliteMemoryLog

__all__ = ['SqliteMemoryLog']
