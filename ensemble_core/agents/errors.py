"""
Exceptions raised by the agent layer.
"""


class EnsembleError(Exception):
    """Base exception for agent layer errors."""
    pass


class UnknownPersonaError(EnsembleError, KeyError):
    """Raised when a persona has no configuration and no default is registered."""

    def __init__(self, persona_id):
        super().__init__(persona_id)
        self.persona_id = persona_id

    def __str__(self) -> str:
        return f"Unknown persona '{self.persona_id}' and no default persona is registered"


class OrchestrationError(EnsembleError):
    """Raised when an orchestration has no valid personas or no persona succeeded."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = dict(errors or {})
