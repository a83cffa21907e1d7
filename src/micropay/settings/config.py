"""Configuration loader for micropay services using Pydantic settings."""

from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "MICROPAY_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "MICROPAY_SETTINGS_FILE"


def _resolve_env(explicit_env: str | None = None) -> str:
    """Return the active environment name.

    Args:
        explicit_env: Environment value supplied directly by the caller.

    Returns:
        A stripped environment name, falling back to ``DEFAULT_ENV``.
    """

    env = explicit_env or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV
    return env.strip()


def _env_file_candidates(env: str) -> list[Path]:
    """List candidate ``.env`` files used during settings resolution."""

    return [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env}",
        PROJECT_ROOT / ".env.local",
    ]


def _resolve_config_path(raw_path: str | None) -> Path | None:
    if not raw_path:
        return None
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = (PROJECT_ROOT / candidate).resolve()
    return candidate


def _config_file_priority() -> tuple[Path, ...]:
    """Return existing config files in descending precedence order."""

    ordered: list[Path] = []
    env_override = _resolve_config_path(os.getenv(SETTINGS_FILE_ENV_VAR))
    if env_override:
        ordered.append(env_override)
    ordered.append(LOCAL_CONFIG_FILE)
    ordered.append(DEFAULT_CONFIG_FILE)
    return tuple(path for path in ordered if path.exists())


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Pydantic settings source that loads values from a TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        try:
            with self.path.open("rb") as handle:
                self._data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:  # pragma: no cover - invalid files surface immediately
            raise ValueError(f"Invalid TOML syntax in {self.path}") from exc
        return self._data

    def __call__(self) -> dict[str, Any]:  # pragma: no cover - trivial wrapper
        return self._load()

    def get_field_value(self, field_name: str, field):  # pragma: no cover - passthrough helper
        data = self._load()
        return data.get(field_name), field_name in data


def _explicit_env_value(*keys: str) -> str | None:
    """Return the first present environment variable from ``keys``."""

    for key in keys:
        value = os.getenv(key)
        if value is not None:
            return value
    return None


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUNTIME__LOG_LEVEL"),
    )


class LLMSettings(BaseSettings):
    """Language model used for intent extraction."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    provider: Literal["ollama", "mock"] = Field(
        default="ollama",
        validation_alias=AliasChoices("LLM_PROVIDER", "LLM__PROVIDER"),
    )
    chat_model: str = Field(
        default="mistral",
        validation_alias=AliasChoices("LLM_CHAT_MODEL", "LLM__CHAT_MODEL"),
    )
    temperature: float = Field(
        default=0.0,
        validation_alias=AliasChoices("LLM_TEMPERATURE", "LLM__TEMPERATURE"),
    )
    max_tokens: int = Field(
        default=200,
        validation_alias=AliasChoices("LLM_MAX_TOKENS", "LLM__MAX_TOKENS"),
    )
    ollama_base_url: str = Field(
        default="http://127.0.0.1:11434",
        validation_alias=AliasChoices("OLLAMA_BASE_URL", "LLM__OLLAMA_BASE_URL"),
    )


class CircleSettings(BaseSettings):
    """Circle developer-transfer credentials and endpoint wiring."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CIRCLE_API_KEY", "CIRCLE__API_KEY"),
    )
    wallet_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CIRCLE_WALLET_ID", "CIRCLE__WALLET_ID"),
    )
    token_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ARC_USDC_TOKEN_ADDRESS", "CIRCLE__TOKEN_ADDRESS"),
    )
    transfer_url: str = Field(
        default="https://api.circle.com/v1/w3s/developer/transactions/transfer",
        validation_alias=AliasChoices("CIRCLE_TRANSFER_URL", "CIRCLE__TRANSFER_URL"),
    )
    blockchain: str = Field(
        default="ARC-T",
        validation_alias=AliasChoices("CIRCLE_BLOCKCHAIN", "CIRCLE__BLOCKCHAIN"),
    )
    explorer_base_url: str = Field(
        default="https://explorer.arc.network/tx/",
        validation_alias=AliasChoices("CIRCLE_EXPLORER_BASE_URL", "CIRCLE__EXPLORER_BASE_URL"),
    )
    timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("CIRCLE_TIMEOUT_SECONDS", "CIRCLE__TIMEOUT_SECONDS"),
    )


class PaymentSettings(BaseSettings):
    """Transfer limits, retry policy, and recipient aliases."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    recipient_map: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RECIPIENT_MAP", "PAYMENTS__RECIPIENT_MAP"),
    )
    max_single_amount: float = Field(
        default=10000,
        validation_alias=AliasChoices("PAYMENTS_MAX_SINGLE_AMOUNT", "PAYMENTS__MAX_SINGLE_AMOUNT"),
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices("PAYMENTS_MAX_ATTEMPTS", "PAYMENTS__MAX_ATTEMPTS"),
    )
    backoff_base_ms: int = Field(
        default=200,
        ge=0,
        validation_alias=AliasChoices("PAYMENTS_BACKOFF_BASE_MS", "PAYMENTS__BACKOFF_BASE_MS"),
    )
    retryable_statuses: list[int] = Field(
        default_factory=lambda: [429, 502, 503, 504],
        validation_alias=AliasChoices("PAYMENTS_RETRYABLE_STATUSES", "PAYMENTS__RETRYABLE_STATUSES"),
    )
    anonymous_user_id: str = Field(
        default="anonymous",
        validation_alias=AliasChoices("PAYMENTS_ANONYMOUS_USER_ID", "PAYMENTS__ANONYMOUS_USER_ID"),
    )

    @field_validator("recipient_map", mode="before")
    @classmethod
    def _serialize_mapping(cls, value: Any) -> Any:
        # TOML tables arrive as dicts; the resolver expects the JSON form used in env vars.
        if isinstance(value, dict):
            return json.dumps(value)
        return value


class AuditSettings(BaseSettings):
    """Best-effort audit sink configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    event_log_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("EVENT_LOG_URL", "AUDIT__EVENT_LOG_URL"),
    )
    timeout_seconds: float = Field(
        default=5.0,
        validation_alias=AliasChoices("AUDIT_TIMEOUT_SECONDS", "AUDIT__TIMEOUT_SECONDS"),
    )
    background: bool = Field(
        default=True,
        validation_alias=AliasChoices("AUDIT_BACKGROUND", "AUDIT__BACKGROUND"),
    )


class VoiceSettings(BaseSettings):
    """ElevenLabs speech-to-text and text-to-speech settings."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    elevenlabs_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "VOICE__ELEVENLABS_API_KEY"),
    )
    base_url: str = Field(
        default="https://api.elevenlabs.io",
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "VOICE__BASE_URL"),
    )
    model_id: str = Field(
        default="eleven_multilingual_v2",
        validation_alias=AliasChoices("ELEVENLABS_MODEL_ID", "VOICE__MODEL_ID"),
    )
    voice_id: str = Field(
        default="21m00Tcm4TlvDq8ikWAM",
        validation_alias=AliasChoices("ELEVENLABS_VOICE_ID", "VOICE__VOICE_ID"),
    )
    timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices("ELEVENLABS_TIMEOUT_SECONDS", "VOICE__TIMEOUT_SECONDS"),
    )


class ObservabilitySettings(BaseSettings):
    """Logging and metrics configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    structured_logging: bool = Field(
        default=True,
        validation_alias=AliasChoices("OBS_STRUCTURED_LOGGING", "OBSERVABILITY__STRUCTURED_LOGGING"),
    )
    statsd_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OBS_STATSD_HOST", "OBSERVABILITY__STATSD_HOST"),
    )
    statsd_port: int = Field(
        default=8125,
        validation_alias=AliasChoices("OBS_STATSD_PORT", "OBSERVABILITY__STATSD_PORT"),
    )
    statsd_prefix: str = Field(
        default="micropay",
        validation_alias=AliasChoices("OBS_STATSD_PREFIX", "OBSERVABILITY__STATSD_PREFIX"),
    )


class Settings(BaseSettings):
    """Top-level configuration model with nested sections for each subsystem."""

    env: str = Field(
        default_factory=lambda: _resolve_env(),
        validation_alias=AliasChoices("ENV", "ENVIRONMENT", "RUNTIME__ENV"),
    )
    project_root: Path = Field(default=PROJECT_ROOT)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    circle: CircleSettings = Field(default_factory=CircleSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    voice: VoiceSettings = Field(default_factory=VoiceSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="MICROPAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Extend settings sources with TOML-based config files."""

        config_sources = [TomlConfigSettingsSource(settings_cls, path) for path in _config_file_priority()]
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            *config_sources,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _apply_environment_overrides(self) -> "Settings":
        """Force environment-specific defaults after basic resolution."""

        if self.env.lower() != "local":
            return self

        # Local runs have no model server unless one is requested explicitly.
        explicit_provider = _explicit_env_value(
            "MICROPAY_LLM__PROVIDER",
            "MICROPAY_LLM_PROVIDER",
            "LLM__PROVIDER",
            "LLM_PROVIDER",
        )
        if not explicit_provider:
            object.__setattr__(self, "llm", self.llm.model_copy(update={"provider": "mock"}))

        observability_update = {"structured_logging": False, "statsd_host": None}
        object.__setattr__(self, "observability", self.observability.model_copy(update=observability_update))
        return self

    @property
    def log_level(self) -> str:
        """str: Effective logging level for the running process."""

        return self.runtime.log_level

    @property
    def demo_mode(self) -> bool:
        """bool: True when no Circle credential is configured."""

        return not self.circle.api_key

    @property
    def is_local(self) -> bool:
        """bool: True when the active environment is ``local``."""

        return self.env.lower() == "local"


def _load_settings(env: str | None = None) -> Settings:
    """Load settings with optional environment override.

    Args:
        env: Environment name supplied programmatically.

    Returns:
        Fully parsed :class:`Settings` instance with env files applied.
    """

    resolved_env = _resolve_env(env)
    candidate_files = [path for path in _env_file_candidates(resolved_env) if path.exists()]
    config_files = _config_file_priority()
    return Settings(
        _env_file=[str(path) for path in candidate_files],
        _env_file_encoding="utf-8",
        env=resolved_env,
        env_files=tuple(candidate_files),
        config_files=config_files,
    )


@lru_cache(maxsize=1)
def get_settings(env: str | None = None) -> Settings:
    """Return cached settings for the requested environment."""

    return _load_settings(env)


def reload_settings(env: str | None = None) -> Settings:
    """Clear the cached settings and reload from disk."""

    get_settings.cache_clear()
    return get_settings(env)


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "PROJECT_ROOT",
    "ENV_VAR_NAME",
]
