"""
Configuration module for the TPE adapter.

Centralized settings for the terminal link, payment flow, Redis bridge
and logging. Values can be overridden through environment variables,
read once when the settings are first requested.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Final, Optional

from .core.value_objects import ResponsePolicy, ValidationMode


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_TPE_URL: Final[str] = "ws://localhost:8787"
RECONNECT_INTERVAL_MS: Final[int] = 5000
PAYMENT_TIMEOUT_MS: Final[int] = 120000
COMMAND_CHANNEL: Final[str] = "tpe_ingenico_commands"


# =============================================================================
# Configuration Classes
# =============================================================================


@dataclass(frozen=True)
class TerminalSettings:
    """Terminal connection settings."""

    url: str = DEFAULT_TPE_URL
    reconnect_interval_ms: int = RECONNECT_INTERVAL_MS
    open_timeout: float = 10.0

    @property
    def reconnect_interval(self) -> float:
        """Reconnect interval in seconds."""
        return self.reconnect_interval_ms / 1000


@dataclass(frozen=True)
class PaymentSettings:
    """Payment flow settings."""

    response_timeout_ms: int = PAYMENT_TIMEOUT_MS
    validation_mode: ValidationMode = ValidationMode.LENIENT
    response_policy: ResponsePolicy = ResponsePolicy.IGNORE_AND_WAIT
    command_channel: str = COMMAND_CHANNEL

    @property
    def response_timeout(self) -> float:
        """Response timeout in seconds."""
        return self.response_timeout_ms / 1000

    @property
    def response_channel(self) -> str:
        """Get response channel name."""
        return f"{self.command_channel}_response"


@dataclass(frozen=True)
class RedisSettings:
    """Redis connection settings."""

    host: str = "localhost"
    port: int = 6379
    decode_responses: bool = True
    state_key_prefix: str = "tpe"


@dataclass(frozen=True)
class LoggingSettings:
    """Logging settings."""

    log_file: str = "logs/tpe_ingenico.log"
    level: int = logging.DEBUG
    loki_url: Optional[str] = None
    app: str = "tpe_ingenico"


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """
    Main application settings.

    Aggregates all configuration sections.
    """

    terminal: TerminalSettings = field(default_factory=TerminalSettings)
    payment: PaymentSettings = field(default_factory=PaymentSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from defaults and environment overrides.

        Recognized variables: TPE_URL, TPE_RECONNECT_INTERVAL_MS,
        TPE_RESPONSE_TIMEOUT_MS, TPE_VALIDATION_MODE, TPE_RESPONSE_POLICY,
        TPE_COMMAND_CHANNEL, TPE_REDIS_HOST, TPE_REDIS_PORT, TPE_LOG_FILE,
        TPE_LOG_LEVEL, TPE_LOKI_URL.
        """
        env = os.environ
        return cls(
            terminal=TerminalSettings(
                url=env.get("TPE_URL", DEFAULT_TPE_URL),
                reconnect_interval_ms=int(
                    env.get("TPE_RECONNECT_INTERVAL_MS", RECONNECT_INTERVAL_MS)
                ),
            ),
            payment=PaymentSettings(
                response_timeout_ms=int(
                    env.get("TPE_RESPONSE_TIMEOUT_MS", PAYMENT_TIMEOUT_MS)
                ),
                validation_mode=ValidationMode(
                    env.get("TPE_VALIDATION_MODE", ValidationMode.LENIENT.value)
                ),
                response_policy=ResponsePolicy(
                    env.get("TPE_RESPONSE_POLICY", ResponsePolicy.IGNORE_AND_WAIT.value)
                ),
                command_channel=env.get("TPE_COMMAND_CHANNEL", COMMAND_CHANNEL),
            ),
            redis=RedisSettings(
                host=env.get("TPE_REDIS_HOST", "localhost"),
                port=int(env.get("TPE_REDIS_PORT", 6379)),
            ),
            logging=LoggingSettings(
                log_file=env.get("TPE_LOG_FILE", LoggingSettings.log_file),
                level=logging.getLevelName(env.get("TPE_LOG_LEVEL", "DEBUG").upper()),
                loki_url=env.get("TPE_LOKI_URL") or None,
            ),
        )


# =============================================================================
# Settings Singleton
# =============================================================================


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
