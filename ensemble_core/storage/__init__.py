"""
Storage layer for long-term agent memory.
"""

from .interfaces import MemoryLogInterface, MemoryKey
from .backends import JsonFileMemoryLog, SqliteMemoryLog
from .factory import StorageFactory

__all__ = [
    'MemoryLogInterface',
    'MemoryKey',
    'JsonFileMemoryLog',
    'SqliteMemoryLog',
    'StorageFactory',
]
