"""Log output for applications that embed the push client.

The client only ever calls ``logging.getLogger(__name__)``; nothing is
written until the application calls ``configure_logging()``. Fields bound
by ``DispatchContext`` (dispatch id, operation, chunk index) and the
per-record fields the client passes via ``extra=`` (duration,
recipient count, error kind) become top-level keys of every JSON line,
so one send can be followed across its concurrent batches.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from expo_push.logging_config.config import LogFormat, LoggingConfig
from expo_push.logging_config.context import get_context_dict
from expo_push.logging_config.performance import set_slow_threshold

PACKAGE_LOGGER = "expo_push"

# Bound through DispatchContext / bind_context.
DISPATCH_FIELDS = ("dispatch_id", "operation", "chunk_index")
# Passed per log call via ``extra=``.
RECORD_FIELDS = ("duration_ms", "status_code", "recipient_count", "error_kind")

NOISY_LOGGERS = ("httpx", "httpcore")


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in RECORD_FIELDS if hasattr(record, key)}


class StructuredFormatter(logging.Formatter):
    """JSON lines.

    Key order: ``ts``, ``level``, ``logger``, ``msg``, ``service``, the
    dispatch fields, the record fields, any other bound context under
    ``context``, then ``caller`` and ``error`` when present.
    """

    def __init__(self, service_name: str = "expo-push", include_caller: bool = False):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "service": self.service_name,
        }

        ctx = get_context_dict()
        for key in DISPATCH_FIELDS:
            if key in ctx:
                entry[key] = ctx.pop(key)
        entry.update(_record_fields(record))
        if ctx:
            entry["context"] = ctx

        if self.include_caller:
            entry["caller"] = f"{record.module}.{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """One readable line per record, for development.

    ``12:00:01.123 WARNING  expo_push.push.dispatch: Batch 2 failed ... [d=1a2b3c4d chunk=2 recipients=100]``
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Shorter tag names for the dispatch and record fields.
    TAGS = {
        "dispatch_id": "d",
        "chunk_index": "chunk",
        "recipient_count": "recipients",
        "error_kind": "kind",
        "duration_ms": "ms",
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        fields = get_context_dict()
        if "dispatch_id" in fields:
            fields["dispatch_id"] = fields["dispatch_id"][:8]
        fields.update(_record_fields(record))
        tags = " ".join(f"{self.TAGS.get(k, k)}={v}" for k, v in fields.items())

        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"
        if tags:
            line += f" [{tags}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    config: Optional[LoggingConfig] = None,
    stream: Optional[TextIO] = None,
    logger_name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """Send the push client's logs to ``stream`` (stderr by default).

    Replaces the handlers of ``logger_name``, the ``expo_push`` package
    logger unless told otherwise; pass ``""`` to configure the root logger
    instead. A package logger configured here stops propagating to root,
    so lines are not written twice.

    ``EXPO_PUSH_LOG_LEVEL`` and ``EXPO_PUSH_LOG_FORMAT`` override ``config``.
    """
    config = LoggingConfig.from_env(config)
    stream = stream or sys.stderr

    if config.format == LogFormat.JSON:
        formatter: logging.Formatter = StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        formatter = ConsoleFormatter(use_color=stream.isatty())

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name or None)
    logger.handlers[:] = [handler]
    logger.setLevel(config.level.value)
    if logger_name:
        logger.propagate = False
    set_slow_threshold(config.slow_threshold_ms)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return logger
