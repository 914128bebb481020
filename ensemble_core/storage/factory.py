"""
Storage factory for creating long-term memory log instances.

This module instantiates the memory log backend named in the storage configuration.
"""
import dataclasses
import logging
from typing import Dict, Any, Optional, List

from ensemble_core.storage.interfaces.memory_log_interface import MemoryLogInterface
from ensemble_core.storage.backends.json_file import JsonFileMemoryLog
from ensemble_core.storage.backends.sqlite import SqliteMemoryLog


class StorageFactory:
    """
    Factory class for creating memory log backend instances.

    ``none`` is a valid backend and yields no store at all; agent memory then
    lives only in the in-process buffer.
    """

    _backends = {
        'json_file': JsonFileMemoryLog,
        'sqlite': SqliteMemoryLog,
    }

    def __init__(self, storage_config):
        self.storage_config = storage_config
        self.logger = logging.getLogger(__name__)

    def create_memory_log(self, backend_type: Optional[str] = None,
                          config_override: Optional[Dict[str, Any]] = None
                          ) -> Optional[MemoryLogInterface]:
        """
        Create a memory log backend instance.

        Args:
            backend_type: 'json_file', 'sqlite' or 'none'. If None, uses configuration setting.
            config_override: Optional configuration override for the backend.

        Returns:
            Configured backend instance, or None for the 'none' backend

        Raises:
            ValueError: If the backend type is not supported
        """
        if backend_type is None:
            backend_type = self.storage_config.backend

        if backend_type == 'none':
            self.logger.info("Long-term memory disabled; using in-process buffers only")
            return None

        if backend_type not in self._backends:
            raise ValueError(f"Unsupported backend type '{backend_type}'. "
                             f"Available backends: {self.list_available_backends()}")

        backend_config = self._get_backend_config(backend_type, config_override)
        self.logger.info(f"Creating {backend_type} memory log")
        return self._backends[backend_type](**backend_config)

    def _get_backend_config(self, backend_type: str,
                            config_override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Get configuration for a specific backend."""
        backend_config = {}

        backend_specific_config = getattr(self.storage_config, backend_type, None)
        if backend_specific_config is not None:
            backend_config = dataclasses.asdict(backend_specific_config)

        if config_override:
            backend_config.update(config_override)

        return backend_config

    def list_available_backends(self) -> List[str]:
        """
        List all available storage backends.

        Returns:
            List of backend type names
        """
        return list(self._backends.keys()) + ['none']
