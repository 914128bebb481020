"""
Centralized Configuration Management System

This module provides the configuration system for the agent ensemble. It:
- Centralizes all configuration settings in one dataclass tree
- Supports environment-specific overrides
- Validates configuration on startup and on every update
- Provides type-safe access to configuration values
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, Optional, Union, List
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
import threading


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LLMProviderType(Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    FAKE = "fake"


class PersonaType(Enum):
    """The closed set of agent personas."""

    STRATEGIC_PLANNING = "strategic_planning"
    CREATIVE_CONTENT = "creative_content"
    SALES_NEGOTIATION = "sales_negotiation"
    MARKET_RESEARCH = "market_research"
    CRISIS_MANAGEMENT = "crisis_management"
    LEGAL_COMPLIANCE = "legal_compliance"
    CULTURAL_INTELLIGENCE = "cultural_intelligence"
    TECHNICAL_ANALYSIS = "technical_analysis"
    ETHICS_ADVISOR = "ethics_advisor"

    @classmethod
    def parse(cls, value: Union[str, "PersonaType"]) -> "PersonaType":
        """Accept enum members, values ('ethics_advisor') or names ('ETHICS_ADVISOR')."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


STORAGE_BACKENDS = ("json_file", "sqlite", "none")


@dataclass
class RetryConfig:
    """Per-provider retry budget"""

    max_attempts: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: Optional[float] = None
    jitter_ms: float = 100
    retry_fatal_errors: bool = False


@dataclass
class OpenAIConfig:
    """OpenAI provider configuration"""

    api_key: Optional[str] = None
    model_name: str = "gpt-4-turbo"
    organization: Optional[str] = None
    base_url: Optional[str] = None
    timeout: Optional[float] = None


@dataclass
class AnthropicConfig:
    """Anthropic provider configuration"""

    api_key: Optional[str] = None
    model_name: str = "claude-3-opus-20240229"
    base_url: Optional[str] = None
    timeout: Optional[float] = None


@dataclass
class GeminiConfig:
    """Gemini provider configuration"""

    api_key: Optional[str] = None
    model_name: str = "gemini-pro"
    timeout: Optional[float] = None


@dataclass
class OllamaConfig:
    """Ollama provider configuration"""

    base_url: str = "http://localhost:11434"
    model_name: str = "llama2"
    keep_alive: str = "5m"
    timeout: Optional[float] = None


@dataclass
class FakeProviderConfig:
    """Scripted offline provider configuration"""

    responses: List[str] = field(default_factory=list)
    default_response: Optional[str] = None
    fail_times: int = 0
    delay: float = 0.0


@dataclass
class LLMConfig:
    """LLM provider configuration"""

    # Registration order is the failover order
    providers: List[str] = field(default_factory=lambda: ["openai", "anthropic", "gemini"])
    timeout: float = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    anthropic: AnthropicConfig = field(default_factory=AnthropicConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    fake: FakeProviderConfig = field(default_factory=FakeProviderConfig)


@dataclass
class MemoryConfig:
    """Agent memory configuration"""

    buffer_size: int = 10
    recall_limit: int = 5
    search_window: int = 50


@dataclass
class JsonFileStorageConfig:
    """JSON file storage configuration"""

    directory: str = "./data/memory"
    pretty_print: bool = True


@dataclass
class SqliteStorageConfig:
    """SQLite storage configuration"""

    database_path: str = "./data/memory.db"


@dataclass
class StorageConfig:
    """Long-term memory storage configuration"""

    backend: str = "json_file"  # Options: "json_file", "sqlite", "none"
    json_file: JsonFileStorageConfig = field(default_factory=JsonFileStorageConfig)
    sqlite: SqliteStorageConfig = field(default_factory=SqliteStorageConfig)


@dataclass
class EnsembleConfig:
    """Multi-agent ensemble configuration"""

    conversation_id: str = "default"
    synthesizer: str = "strategic_planning"
    default_persona: str = "technical_analysis"
    fan_out_limit: int = 4
    max_tokens: int = 1000
    failover_enabled: bool = True
    audit_orchestrations: bool = True


@dataclass
class PersonaOverrideConfig:
    """Startup-time override of one built-in persona"""

    provider: Optional[str] = None
    model_name: Optional[str] = None
    temperature: Optional[float] = None
    system_prompt: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: LogLevel = LogLevel.INFO
    json_format: bool = False


@dataclass
class AppConfig:
    """Main application configuration"""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    llm: LLMConfig = field(default_factory=LLMConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)
    personas: Dict[str, PersonaOverrideConfig] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""

    pass


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _parse_list(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


CONFIG_FILE_EXTENSIONS = ("yaml", "yml", "json")

_MISSING = object()


def _coerce(current: Any, value: Any) -> Any:
    """Convert a file value to the type of the field it replaces."""
    if isinstance(current, Enum) and not isinstance(value, Enum):
        enum_cls = type(current)
        try:
            return enum_cls(value)
        except ValueError:
            try:
                return enum_cls[str(value).upper()]
            except KeyError:
                raise ValueError(f"{value!r} is not a valid {enum_cls.__name__}") from None
    if isinstance(current, float) and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def validate_config(config: AppConfig) -> List[str]:
    """
    Collect every problem in ``config``.

    Returns:
        Human readable error messages; empty when the configuration is valid
    """
    errors = []
    known_providers = {p.value for p in LLMProviderType}
    known_personas = {p.value for p in PersonaType}

    if not config.llm.providers:
        errors.append("llm.providers must list at least one provider")
    for name in config.llm.providers:
        if name not in known_providers:
            errors.append(f"Unknown LLM provider '{name}'")
    if len(set(config.llm.providers)) != len(config.llm.providers):
        errors.append("llm.providers must not repeat a provider")
    if config.llm.timeout <= 0:
        errors.append("llm.timeout must be positive")

    retry = config.llm.retry
    if retry.max_attempts < 1:
        errors.append("llm.retry.max_attempts must be at least 1")
    if retry.base_delay_ms < 0 or retry.jitter_ms < 0:
        errors.append("llm.retry delays cannot be negative")
    if retry.max_delay_ms is not None and retry.max_delay_ms < 0:
        errors.append("llm.retry.max_delay_ms cannot be negative")

    if config.memory.buffer_size < 1:
        errors.append("memory.buffer_size must be at least 1")
    if config.memory.recall_limit < 0:
        errors.append("memory.recall_limit cannot be negative")
    if config.memory.search_window < 1:
        errors.append("memory.search_window must be at least 1")

    if config.storage.backend not in STORAGE_BACKENDS:
        errors.append(
            f"Unknown storage backend '{config.storage.backend}', expected one of {STORAGE_BACKENDS}"
        )

    if config.ensemble.fan_out_limit < 1:
        errors.append("ensemble.fan_out_limit must be at least 1")
    if config.ensemble.max_tokens < 1:
        errors.append("ensemble.max_tokens must be positive")
    for key in ("synthesizer", "default_persona"):
        persona_id = getattr(config.ensemble, key)
        if persona_id not in known_personas:
            errors.append(f"ensemble.{key} names unknown persona '{persona_id}'")

    for persona_id, override in config.personas.items():
        if persona_id not in known_personas:
            errors.append(f"personas overrides unknown persona '{persona_id}'")
        if override.temperature is not None and not 0.0 <= override.temperature <= 2.0:
            errors.append(f"personas.{persona_id}.temperature must be between 0 and 2")
        if override.provider is not None and override.provider not in known_providers:
            errors.append(f"personas.{persona_id}.provider names unknown provider '{override.provider}'")

    return errors


class ConfigManager:
    """
    Centralized configuration manager with support for:
    - Environment-specific configurations
    - Configuration validation
    - Dot-notation access and updates
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        """Singleton pattern implementation"""
        if not cls._instance:
            with cls._lock:
                if not cls._instance:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        # Avoid re-initialization in singleton
        if hasattr(self, "_initialized"):
            return

        self._initialized = True
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            # Look for config directory relative to project root
            project_root = Path(__file__).parent.parent.parent
            self.config_dir = project_root / "config"

        self.config: AppConfig = AppConfig()
        self.logger = logging.getLogger(__name__)

        self._load_configuration()

    @staticmethod
    def _candidate_files(environment: str) -> List[str]:
        """Config files in the order they are applied; later files win."""
        names = []
        for stem in ("config", f"environments/config.{environment}"):
            names.extend(f"{stem}.{ext}" for ext in CONFIG_FILE_EXTENSIONS)
        return names

    def _load_configuration(self):
        """Defaults, then config files, then environment variables; then validate."""
        self.config = AppConfig()

        environment = os.getenv("ENVIRONMENT", Environment.DEVELOPMENT.value).lower()
        for filename in self._candidate_files(environment):
            self._load_from_file(filename)

        self._load_from_environment()
        self._validate_configuration()

    def _load_from_file(self, filename: str):
        path = self.config_dir / filename
        if not path.is_file():
            return

        try:
            text = path.read_text()
            data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load configuration from {filename}: {e}")
            return

        if not data:
            return
        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring {filename}: top level must be a mapping")
            return

        self._update_config_from_dict(data)
        self.logger.info(f"Loaded configuration from {filename}")

    def _load_from_environment(self):
        """Load configuration from environment variables"""
        env_mappings = {
            # Environment
            "ENVIRONMENT": ("environment", lambda x: Environment(x.lower())),
            "DEBUG": ("debug", _parse_bool),
            "LOG_LEVEL": ("logging.level", lambda x: LogLevel(x.upper())),
            # LLM routing
            "LLM_PROVIDERS": ("llm.providers", _parse_list),
            "LLM_TIMEOUT": ("llm.timeout", float),
            "RETRY_MAX_ATTEMPTS": ("llm.retry.max_attempts", int),
            "RETRY_BASE_DELAY_MS": ("llm.retry.base_delay_ms", float),
            # API Keys
            "OPENAI_API_KEY": ("llm.openai.api_key", str),
            "ANTHROPIC_API_KEY": ("llm.anthropic.api_key", str),
            "GEMINI_API_KEY": ("llm.gemini.api_key", str),  # For backward compatibility
            "GOOGLE_API_KEY": ("llm.gemini.api_key", str),
            "OLLAMA_BASE_URL": ("llm.ollama.base_url", str),
            # Storage
            "MEMORY_BACKEND": ("storage.backend", lambda x: x.lower()),
            "MEMORY_DIRECTORY": ("storage.json_file.directory", str),
            "SQLITE_DATABASE_PATH": ("storage.sqlite.database_path", str),
            # Ensemble
            "ENSEMBLE_FAN_OUT_LIMIT": ("ensemble.fan_out_limit", int),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    self._set_nested_attr(self.config, config_path, converter(value))
                except (ValueError, TypeError) as e:
                    self.logger.warning(f"Invalid value for {env_var}: {value}, error: {e}")

    def _update_config_from_dict(self, data: Dict[str, Any], prefix: str = ""):
        """Merge a parsed config file into the dataclass tree."""
        for key, value in data.items():
            config_path = f"{prefix}.{key}" if prefix else key

            if config_path == "personas":
                self._update_persona_overrides(value or {})
                continue
            if isinstance(value, dict):
                self._update_config_from_dict(value, config_path)
                continue

            try:
                current = self.get(config_path, _MISSING)
                if current is _MISSING:
                    raise AttributeError(config_path)
                self._set_nested_attr(self.config, config_path, _coerce(current, value))
            except AttributeError:
                self.logger.warning(f"Unknown configuration key: {config_path}")
            except ValueError as e:
                self.logger.warning(f"Invalid value for {config_path}: {value}, error: {e}")

    def _update_persona_overrides(self, data: Dict[str, Any]):
        for persona_id, fields in data.items():
            key = str(persona_id).lower()
            override = self.config.personas.setdefault(key, PersonaOverrideConfig())
            for field_name, value in (fields or {}).items():
                if not hasattr(override, field_name):
                    self.logger.warning(f"Unknown configuration key: personas.{key}.{field_name}")
                    continue
                setattr(override, field_name, value)

    def _set_nested_attr(self, obj: Any, path: str, value: Any):
        """Set nested attribute using dot notation"""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        if not hasattr(obj, parts[-1]):
            raise AttributeError(parts[-1])
        setattr(obj, parts[-1], value)

    def _validate_configuration(self):
        """Validate configuration settings"""
        errors = validate_config(self.config)

        if errors:
            raise ConfigValidationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info("Configuration validation passed")

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        try:
            obj = self.config
            for part in path.split("."):
                obj = getattr(obj, part)
            return obj
        except AttributeError:
            return default

    def set(self, path: str, value: Any):
        """Set configuration value using dot notation"""
        self._set_nested_attr(self.config, path, value)
        self._validate_configuration()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""

        def _asdict_recursive(obj):
            if isinstance(obj, Enum):
                return obj.value
            if isinstance(obj, dict):
                return {key: _asdict_recursive(value) for key, value in obj.items()}
            if isinstance(obj, list):
                return [_asdict_recursive(item) for item in obj]
            if hasattr(obj, "__dict__"):
                return {key: _asdict_recursive(value) for key, value in obj.__dict__.items()}
            return obj

        return _asdict_recursive(self.config)

    def save_to_file(self, filename: str, format: str = "yaml"):
        """Save current configuration to file"""
        file_path = self.config_dir / filename
        config_dict = self.to_dict()

        with open(file_path, "w") as f:
            if format.lower() == "yaml":
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {filename}")


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the global configuration manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def init_config(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Initialize the global configuration manager"""
    global _config_manager
    ConfigManager._instance = None
    _config_manager = ConfigManager(config_dir)
    return _config_manager
