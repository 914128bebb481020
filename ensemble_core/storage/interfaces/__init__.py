"""
Storage interfaces package.

This package contains abstract interfaces that define contracts for storage backends.
"""

from .memory_log_interface import MemoryLogInterface, MemoryKey

__all__ = ['MemoryLogInterface', 'MemoryKey']
