"""Performance Logging.

Timing of transport round trips, with slow calls logged at WARNING.
"""

import logging
import time
from typing import Optional

from expo_push.logging_config.config import DEFAULT_LOGGING_CONFIG

logger = logging.getLogger(__name__)

_slow_threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms


def set_slow_threshold(threshold_ms: float) -> None:
    """Default threshold for timers created without one."""
    global _slow_threshold_ms
    _slow_threshold_ms = threshold_ms


class PerformanceTimer:
    """Context manager for timing code blocks.

    Example:
        with PerformanceTimer("push.send_batch") as timer:
            body = await transport.send_batch(payload)
        print(f"Request took {timer.duration_ms:.1f}ms")
    """

    def __init__(self, operation_name: str, threshold_ms: Optional[float] = None):
        self.operation_name = operation_name
        self.threshold_ms = _slow_threshold_ms if threshold_ms is None else threshold_ms
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        extra = {"duration_ms": round(self.duration_ms, 2)}

        if exc_type is not None:
            # Callers report the failure itself.
            logger.debug(
                "%s failed after %.1fms: %s",
                self.operation_name, self.duration_ms, exc_type.__name__,
                extra=extra,
            )
        elif self.duration_ms >= self.threshold_ms:
            logger.warning(
                "Slow operation: %s took %.1fms", self.operation_name, self.duration_ms,
                extra=extra,
            )
        else:
            logger.debug(
                "%s completed in %.1fms", self.operation_name, self.duration_ms,
                extra=extra,
            )
