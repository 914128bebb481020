"""
Agent Ensemble - multi-provider LLM orchestration core.
"""

__version__ = "0.1.0"
