"""
Agents package for the multi-provider ensemble.

This package provides personas, per-agent memory, the per-persona generation
engine and the ensemble that orchestrates several personas on one task.
"""

from ensemble_core.agents.errors import EnsembleError, UnknownPersonaError, OrchestrationError
from ensemble_core.agents.personas import PersonaConfig, PersonaRegistry, BUILTIN_PERSONAS
from ensemble_core.agents.memory import AgentMemory, MemoryEntry, MemoryDegradedWarning
from ensemble_core.agents.engine import GenerationEngine, GenerationOptions
from ensemble_core.agents.ensemble import Agent, AgentEnsemble, OrchestrationResult
from ensemble_core.agents.factory import create_agent_ensemble

__all__ = [
    "EnsembleError",
    "UnknownPersonaError",
    "OrchestrationError",
    "PersonaConfig",
    "PersonaRegistry",
    "BUILTIN_PERSONAS",
    "AgentMemory",
    "MemoryEntry",
    "MemoryDegradedWarning",
    "GenerationEngine",
    "GenerationOptions",
    "Agent",
    "AgentEnsemble",
    "OrchestrationResult",
    "create_agent_ensemble",
]
