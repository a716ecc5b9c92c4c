"""Structured logging for the push client.

Provides JSON/console log formatting, dispatch-scoped context binding,
and timing of transport calls.
"""

from expo_push.logging_config.config import LogFormat, LoggingConfig, LogLevel
from expo_push.logging_config.context import DispatchContext, bind_context, generate_dispatch_id
from expo_push.logging_config.performance import PerformanceTimer, set_slow_threshold
from expo_push.logging_config.setup import (
    ConsoleFormatter,
    StructuredFormatter,
    configure_logging,
)

__all__ = [
    # Config
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    # Context
    "DispatchContext",
    "bind_context",
    "generate_dispatch_id",
    # Output
    "ConsoleFormatter",
    "StructuredFormatter",
    "configure_logging",
    # Timing
    "PerformanceTimer",
    "set_slow_threshold",
]
