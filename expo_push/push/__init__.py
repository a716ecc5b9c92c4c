"""Expo Push Notifications.

Client for the Expo push service supporting:
- Token validation and immutable notification building
- Chunking into 100-recipient send batches
- Concurrent batch dispatch with bounded connections
- Ticket/receipt correlation and error explanations
"""

from expo_push.push.config import (
    BatchErrorKind,
    NotificationPriority,
    TicketStatus,
    PushConfig,
    DEFAULT_PUSH_CONFIG,
    CHUNK_LIMIT,
    RECEIPT_CHUNK_LIMIT,
    DEFAULT_CONCURRENCY,
)
from expo_push.push.errors import (
    PushError,
    ValidationError,
    PushTokenInvalid,
    InvalidArgument,
    TransportError,
    ServerError,
    TicketsWithErrors,
    TicketsExpectationFailed,
    TicketError,
    ReceiptsWithErrors,
    explain,
)
from expo_push.push.tokens import is_expo_push_token, extract_push_token
from expo_push.push.notification import Notification
from expo_push.push.chunk import Chunk, chunk_notifications
from expo_push.push.tickets import Ticket, TicketList, BatchError, BatchOutcome, Tickets
from expo_push.push.receipts import Receipt, Receipts, resolve_receipts
from expo_push.push.transport import PushTransport, HttpxTransport
from expo_push.push.dispatch import DispatchEngine, classify_response
from expo_push.push.client import PushClient

__all__ = [
    # Config
    "BatchErrorKind",
    "NotificationPriority",
    "TicketStatus",
    "PushConfig",
    "DEFAULT_PUSH_CONFIG",
    "CHUNK_LIMIT",
    "RECEIPT_CHUNK_LIMIT",
    "DEFAULT_CONCURRENCY",
    # Errors
    "PushError",
    "ValidationError",
    "PushTokenInvalid",
    "InvalidArgument",
    "TransportError",
    "ServerError",
    "TicketsWithErrors",
    "TicketsExpectationFailed",
    "TicketError",
    "ReceiptsWithErrors",
    "explain",
    # Tokens
    "is_expo_push_token",
    "extract_push_token",
    # Models
    "Notification",
    "Chunk",
    "chunk_notifications",
    "Ticket",
    "TicketList",
    "BatchError",
    "BatchOutcome",
    "Tickets",
    "Receipt",
    "Receipts",
    "resolve_receipts",
    # Transport & dispatch
    "PushTransport",
    "HttpxTransport",
    "DispatchEngine",
    "classify_response",
    "PushClient",
]
