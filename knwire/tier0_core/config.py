"""
knwire.tier0_core.config
─────────────────────────
Typed engine settings with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; invalid values raise
ConfigurationError when the settings are first loaded, not mid-pass.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knwire.tier0_core.errors import ConfigurationError


class WiringSettings(BaseSettings):
    """
    Typed engine settings. All env vars are prefixed with KNWIRE_ unless
    overridden.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development", alias="KNWIRE_ENV")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="KNWIRE_LOG_LEVEL")
    log_format: str = Field(default="json", alias="KNWIRE_LOG_FORMAT")

    # ── Registry ──────────────────────────────────────────────────────────────
    registry_backend: str = Field(default="kubernetes", alias="KNWIRE_REGISTRY_BACKEND")
    kube_api_url: str = Field(
        default="https://kubernetes.default.svc",
        alias="KNWIRE_KUBE_API_URL",
    )
    kube_token_path: str = Field(
        default="/var/run/secrets/kubernetes.io/serviceaccount/token",
        alias="KNWIRE_KUBE_TOKEN_PATH",
    )
    kube_ca_path: str = Field(
        default="/var/run/secrets/kubernetes.io/serviceaccount/ca.crt",
        alias="KNWIRE_KUBE_CA_PATH",
    )
    registry_timeout: float = Field(default=10.0, alias="KNWIRE_REGISTRY_TIMEOUT")
    discovery_ttl: float = Field(default=300.0, alias="KNWIRE_DISCOVERY_TTL")

    # ── Runtime handoff ───────────────────────────────────────────────────────
    environment_variable: str = Field(
        default="CAMEL_KNATIVE_CONFIGURATION",
        alias="KNWIRE_ENVIRONMENT_VARIABLE",
    )
    listen_host: str = Field(default="0.0.0.0", alias="KNWIRE_LISTEN_HOST")
    listen_port: int = Field(default=8080, alias="KNWIRE_LISTEN_PORT")

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("registry_backend")
    @classmethod
    def validate_registry_backend(cls, v: str) -> str:
        allowed = {"memory", "kubernetes"}
        if v.lower() not in allowed:
            raise ValueError(f"registry backend must be one of {allowed}, got {v!r}")
        return v.lower()

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def get_config() -> WiringSettings:
    """
    Return the singleton settings. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    try:
        return WiringSettings()
    except PydanticValidationError as exc:
        raise ConfigurationError(
            user_message="Invalid knwire settings.",
            detail=str(exc),
        ) from exc


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()
