"""
JSON file storage backend.
"""

from .json_file_memory_log import JsonFileMemoryLog

__all__ = ['JsonFileMemoryLog']
