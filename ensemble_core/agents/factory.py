"""
Bootstrap for a fully wired AgentEnsemble.
"""

import logging
from typing import Optional

from ensemble_core.config.config_manager import AppConfig, get_config
from ensemble_core.llm.factory import LLMProviderFactory
from ensemble_core.llm.retry import RetryPolicy
from ensemble_core.llm.router import ProviderRouter
from ensemble_core.storage.factory import StorageFactory
from ensemble_core.agents.personas import PersonaRegistry
from ensemble_core.agents.ensemble import AgentEnsemble

logger = logging.getLogger(__name__)


def create_agent_ensemble(config: Optional[AppConfig] = None) -> AgentEnsemble:
    """
    Build providers, router, personas and memory store from configuration.

    Args:
        config: Application configuration; the process-wide one if omitted

    Returns:
        An AgentEnsemble that is not yet connected

    Raises:
        LLMError: If no provider could be created
        ValueError: If the storage backend is not supported
    """
    config = config or get_config().config

    providers = LLMProviderFactory(config.llm).create_providers()
    retry_policy = RetryPolicy.from_config(config.llm.retry)
    router = ProviderRouter(providers, retry_policy=retry_policy, timeout=config.llm.timeout)

    registry = PersonaRegistry.from_config(
        config.personas, default_persona=config.ensemble.default_persona
    )
    store = StorageFactory(config.storage).create_memory_log()

    ensemble = AgentEnsemble(
        router,
        registry,
        store=store,
        conversation_id=config.ensemble.conversation_id,
        synthesizer=config.ensemble.synthesizer,
        fan_out_limit=config.ensemble.fan_out_limit,
        max_tokens=config.ensemble.max_tokens,
        failover_enabled=config.ensemble.failover_enabled,
        audit_orchestrations=config.ensemble.audit_orchestrations,
        buffer_size=config.memory.buffer_size,
        recall_limit=config.memory.recall_limit,
        search_window=config.memory.search_window,
    )
    logger.info(
        f"Agent ensemble ready with providers {router.provider_names} "
        f"and storage backend '{config.storage.backend}'"
    )
    return ensemble
