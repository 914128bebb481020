from .config_manager import (
    AppConfig,
    ConfigManager,
    get_config,
    init_config,
    validate_config,
    ConfigValidationError,
    Environment,
    LogLevel,
    LLMProviderType,
    PersonaType,
)

__all__ = [
    "AppConfig",
    "ConfigManager",
    "get_config",
    "init_config",
    "validate_config",
    "ConfigValidationError",
    "Environment",
    "LogLevel",
    "LLMProviderType",
    "PersonaType",
]
