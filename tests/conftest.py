"""Pytest configuration and shared fixtures."""

import asyncio
import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_loggers():
    """Restore root and package logger state after each test."""
    from expo_push.logging_config.config import DEFAULT_LOGGING_CONFIG
    from expo_push.logging_config.performance import set_slow_threshold

    saved = []
    for name in (None, "expo_push"):
        logger = logging.getLogger(name)
        saved.append((logger, logger.handlers[:], logger.level, logger.propagate))

    yield

    for logger, handlers, level, propagate in saved:
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate
    set_slow_threshold(DEFAULT_LOGGING_CONFIG.slow_threshold_ms)


@pytest.fixture(autouse=True)
def clear_push_env(monkeypatch):
    """Keep EXPO_PUSH_* variables from the host environment out of tests."""
    for name in (
        "EXPO_PUSH_ACCESS_TOKEN",
        "EXPO_PUSH_CONCURRENCY",
        "EXPO_PUSH_BASE_URL",
        "EXPO_PUSH_TIMEOUT",
        "EXPO_PUSH_LOG_LEVEL",
        "EXPO_PUSH_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


def make_tokens(count: int, prefix: str = "tok") -> list[str]:
    """Distinct valid push tokens."""
    return [f"ExponentPushToken[{prefix}{i:04d}]" for i in range(count)]


class FakeTransport:
    """In-memory transport.

    ``responder(payload)`` builds the send response; by default every
    recipient gets an ok ticket whose id is ``receipt-<token>``.
    """

    def __init__(self, responder=None, receipts=None, delay: float = 0.0):
        self.responder = responder or self.ok_tickets
        self.receipts = receipts if receipts is not None else {"data": {}}
        self.delay = delay
        self.sent: list[list[dict]] = []
        self.receipt_requests: list[list[str]] = []
        self.closed = False

    @staticmethod
    def ok_tickets(payload):
        return {
            "data": [
                {"status": "ok", "id": f"receipt-{token}"}
                for message in payload
                for token in message["to"]
            ]
        }

    async def send_batch(self, payload):
        self.sent.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responder(payload)
        if isinstance(response, Exception):
            raise response
        return response

    async def fetch_receipts(self, ids):
        self.receipt_requests.append(list(ids))
        if isinstance(self.receipts, Exception):
            raise self.receipts
        if callable(self.receipts):
            return self.receipts(ids)
        return self.receipts

    async def aclose(self):
        self.closed = True


@pytest.fixture
def tokens():
    return make_tokens(5)


@pytest.fixture
def fake_transport():
    return FakeTransport()
