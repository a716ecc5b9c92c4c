"""Logging Configuration.

Log level, output format and slow-call threshold for applications that
turn on the push client's logs.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
import os


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = False
    # Transport calls slower than this are logged at WARNING.
    slow_threshold_ms: float = 2000.0
    service_name: str = "expo-push"

    @classmethod
    def from_env(cls, base: Optional["LoggingConfig"] = None) -> "LoggingConfig":
        """Apply EXPO_PUSH_LOG_LEVEL / EXPO_PUSH_LOG_FORMAT on top of ``base``.

        Unknown values are ignored.
        """
        config = base or DEFAULT_LOGGING_CONFIG
        overrides: dict = {}

        level = os.environ.get("EXPO_PUSH_LOG_LEVEL", "").upper()
        if level in LogLevel.__members__:
            overrides["level"] = LogLevel(level)

        fmt = os.environ.get("EXPO_PUSH_LOG_FORMAT", "").lower()
        if fmt in {f.value for f in LogFormat}:
            overrides["format"] = LogFormat(fmt)

        return replace(config, **overrides) if overrides else config


DEFAULT_LOGGING_CONFIG = LoggingConfig()
