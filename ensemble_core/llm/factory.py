"""
LLM provider factory for creating LLM provider instances.

This module instantiates the configured provider adapters, in registration order,
so the router can use that order as its failover order.
"""

import dataclasses
import importlib
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    LLMError,
    LLMAuthenticationError,
)

# Adapter classes by provider name; imported on first use so an unused vendor
# SDK is never loaded
PROVIDER_CLASSES: Dict[str, str] = {
    "openai": "ensemble_core.llm.providers.openai.openai_provider:OpenAILLMProvider",
    "anthropic": "ensemble_core.llm.providers.anthropic.anthropic_provider:AnthropicLLMProvider",
    "gemini": "ensemble_core.llm.providers.gemini.gemini_provider:GeminiLLMProvider",
    "ollama": "ensemble_core.llm.providers.ollama.ollama_provider:OllamaLLMProvider",
    "fake": "ensemble_core.llm.providers.fake.fake_provider:FakeLLMProvider",
}


class LLMProviderFactory:
    """
    Factory class for creating LLM provider instances.

    Provider-specific settings come from the matching sub-section of the ``llm``
    configuration section; the section-level ``timeout`` is used when a provider
    does not set its own.
    """

    def __init__(self, llm_config):
        self.llm_config = llm_config
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def list_available_providers() -> List[str]:
        return list(PROVIDER_CLASSES)

    def _load_provider_class(self, provider_type: str):
        if provider_type not in PROVIDER_CLASSES:
            raise ValueError(
                f"Unsupported provider type '{provider_type}'. "
                f"Available providers: {list(PROVIDER_CLASSES)}"
            )
        module_path, class_name = PROVIDER_CLASSES[provider_type].split(":")
        module = importlib.import_module(module_path)
        return getattr(module, class_name)

    def _get_provider_config(
        self, provider_type: str, config_override: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Get configuration for a specific provider."""
        provider_config: Dict[str, Any] = {}

        section = getattr(self.llm_config, provider_type, None)
        if section is not None:
            provider_config = {
                key: value for key, value in dataclasses.asdict(section).items()
                if value is not None
            }

        provider_config.setdefault("timeout", self.llm_config.timeout)

        if config_override:
            provider_config.update(config_override)

        return provider_config

    def create_provider(
        self, provider_type: str, config_override: Optional[Dict[str, Any]] = None
    ) -> LLMProviderInterface:
        """
        Create an LLM provider instance.

        Args:
            provider_type: One of the names in PROVIDER_CLASSES
            config_override: Optional configuration override for the provider

        Returns:
            Configured LLM provider instance

        Raises:
            ValueError: If the provider type is not supported
            LLMError: If the adapter cannot be constructed
        """
        provider_class = self._load_provider_class(provider_type)
        provider_config = self._get_provider_config(provider_type, config_override)

        self.logger.info(f"Creating {provider_type} LLM provider")
        return provider_class(provider_config)

    def create_providers(self) -> "OrderedDict[str, LLMProviderInterface]":
        """
        Create every configured provider in registration order.

        Providers that cannot be built (typically a missing API key) are skipped
        with a warning; the router treats them as failed if they are requested.

        Raises:
            LLMError: If no provider could be created
        """
        providers: "OrderedDict[str, LLMProviderInterface]" = OrderedDict()

        for provider_type in self.llm_config.providers:
            try:
                providers[provider_type] = self.create_provider(provider_type)
            except LLMAuthenticationError as e:
                self.logger.warning(f"Skipping {provider_type} provider: {e}")
            except LLMError as e:
                self.logger.error(f"Failed to create {provider_type} LLM provider: {e}")

        if not providers:
            raise LLMError(
                f"No LLM providers could be created from {self.llm_config.providers}"
            )

        self.logger.info(f"Created providers in failover order: {list(providers)}")
        return providers
