"""Configuration for the Expo push client."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


class TicketStatus(str, Enum):
    """Status reported for a ticket or a receipt."""
    OK = "ok"
    ERROR = "error"


class BatchErrorKind(str, Enum):
    """Why a whole batch produced no tickets."""
    TRANSPORT = "transport"
    SERVICE_ERRORS = "service_errors"
    COUNT_MISMATCH = "count_mismatch"


class NotificationPriority(str, Enum):
    """Delivery priority accepted by the push service."""
    DEFAULT = "default"
    NORMAL = "normal"
    HIGH = "high"


# ── Service limits ───────────────────────────────────────────────────

# Max recipients in one send request. Lowering it breaks existing callers
# that size their own batches against it.
CHUNK_LIMIT = 100
# Max receipt ids in one getReceipts request.
RECEIPT_CHUNK_LIMIT = 300
# Max concurrent HTTP requests during a dispatch.
DEFAULT_CONCURRENCY = 6

BASE_URL = "https://exp.host"
BASE_API_PATH = "/--/api/v2"
PUSH_API_PATH = f"{BASE_API_PATH}/push/send"
RECEIPTS_API_PATH = f"{BASE_API_PATH}/push/getReceipts"


@dataclass(frozen=True)
class PushConfig:
    """Push client configuration."""

    access_token: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    base_url: str = BASE_URL
    request_timeout: float = 30.0
    chunk_limit: int = CHUNK_LIMIT
    receipt_chunk_limit: int = RECEIPT_CHUNK_LIMIT
    user_agent: str = f"expo-server-sdk-python/{__version__}"

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if not 1 <= self.chunk_limit <= CHUNK_LIMIT:
            raise ValueError(f"chunk_limit must be between 1 and {CHUNK_LIMIT}")
        if not 1 <= self.receipt_chunk_limit <= RECEIPT_CHUNK_LIMIT:
            raise ValueError(
                f"receipt_chunk_limit must be between 1 and {RECEIPT_CHUNK_LIMIT}"
            )

    @classmethod
    def from_env(cls, base: Optional["PushConfig"] = None) -> "PushConfig":
        """Apply EXPO_PUSH_* environment overrides on top of ``base``."""
        config = base or DEFAULT_PUSH_CONFIG
        overrides: dict = {}

        token = os.environ.get("EXPO_PUSH_ACCESS_TOKEN", "")
        if token:
            overrides["access_token"] = token

        concurrency = os.environ.get("EXPO_PUSH_CONCURRENCY", "")
        if concurrency.isdigit():
            overrides["concurrency"] = int(concurrency)

        base_url = os.environ.get("EXPO_PUSH_BASE_URL", "")
        if base_url:
            overrides["base_url"] = base_url.rstrip("/")

        timeout = os.environ.get("EXPO_PUSH_TIMEOUT", "")
        if timeout:
            try:
                overrides["request_timeout"] = float(timeout)
            except ValueError:
                logger.warning("Ignoring non-numeric EXPO_PUSH_TIMEOUT=%r", timeout)

        return replace(config, **overrides) if overrides else config


DEFAULT_PUSH_CONFIG = PushConfig()
