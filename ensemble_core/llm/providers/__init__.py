"""
LLM provider implementations.

Each vendor lives in its own subpackage so its SDK is only imported when the
provider factory actually needs it.
"""
