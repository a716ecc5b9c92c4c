"""Push Client Exception Hierarchy.

Typed exceptions for every failure the client can report. Batch-level
and receipt-level failures are normally carried as values inside
``Tickets`` / ``Receipts``; strict mode raises them.
"""

from typing import Any, Mapping, Optional, Union


EXPLANATIONS = {
    "DeviceNotRegistered": (
        "The device cannot receive push notifications anymore and you "
        "should stop sending messages to the corresponding Expo push token."
    ),
    "InvalidCredentials": (
        "Your push notification credentials for your standalone app are "
        "invalid (ex: you may have revoked them). Run expo build:ios -c "
        "to regenerate new push notification credentials for iOS. If you "
        "revoke an APN key, all apps that rely on that key will no longer "
        "be able to send or receive push notifications until you upload a "
        "new key to replace it. Uploading a new APN key will not change "
        "your users' Expo Push Tokens."
    ),
    "MessageTooBig": (
        "The total notification payload was too large. On Android and iOS "
        "the total payload must be at most 4096 bytes."
    ),
    "MessageRateExceeded": (
        "You are sending messages too frequently to the given device. "
        "Implement exponential backoff and slowly retry sending messages."
    ),
}

NO_IDENTIFIER_MESSAGE = "There is no identifier given to explain"


def explain(error: Union[str, Mapping[str, Any], None]) -> str:
    """Explain a service error identifier in plain words.

    Accepts either the identifier itself (``"DeviceNotRegistered"``) or a
    raw ticket/receipt mapping with ``details.error``. Never raises.
    """
    if isinstance(error, str):
        identifier = error
    else:
        try:
            identifier = error["details"]["error"]
        except (KeyError, TypeError):
            return NO_IDENTIFIER_MESSAGE
    if not isinstance(identifier, str):
        return NO_IDENTIFIER_MESSAGE

    return EXPLANATIONS.get(
        identifier, f"There is no embedded explanation for {identifier}. Sorry!"
    )


class PushError(Exception):
    """Base exception for all push client errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def explain(self) -> str:
        identifier = self.details.get("error") if isinstance(self.details, Mapping) else None
        return explain(identifier)


class ValidationError(PushError):
    """Raised when a notification is built with invalid input."""


class PushTokenInvalid(ValidationError):
    """Raised when a recipient is not a valid Expo push token."""

    def __init__(self, token: Any):
        self.token = token
        super().__init__(f"Expected a valid Expo Push Token, actual: {token}")


class InvalidArgument(ValidationError):
    """Raised when a payload field has the wrong shape or value."""


class TransportError(PushError):
    """Raised when the service cannot be reached or its body cannot be parsed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServerError(PushError):
    """Raised when a response does not follow the expected protocol at all."""


class TicketsWithErrors(PushError):
    """The service rejected a whole send batch."""

    def __init__(self, errors: list, data: Any = None):
        self.errors = errors
        self.data = data
        if not errors:
            message = "Expected at least one error, but got none"
        else:
            messages = [_error_message(error) for error in errors]
            message = f"Expo indicated one or more problems: {messages}"
        super().__init__(message)


class TicketsExpectationFailed(PushError):
    """The number of tickets returned differs from the number of recipients sent."""

    def __init__(self, expected_count: int, data: Any = None):
        self.expected_count = expected_count
        self.data = data
        actual = len(data) if isinstance(data, list) else "<not a list of tickets>"
        plural = "" if expected_count == 1 else "s"
        super().__init__(
            f"Expected {expected_count} ticket{plural}, actual: {actual}. "
            "The response data can be inspected."
        )


class TicketError(PushError):
    """A single recipient was rejected; raised only in strict mode."""

    def __init__(self, ticket: Any):
        self.ticket = ticket
        super().__init__(
            f"Push to {ticket.token} failed: {ticket.message}", details=ticket.details
        )


class ReceiptsWithErrors(PushError):
    """The service rejected a whole receipt lookup."""

    def __init__(self, errors: list, data: Any = None):
        self.errors = errors
        self.data = data
        if not errors:
            message = "Expected at least one error, but got none"
        else:
            messages = [_error_message(error) for error in errors]
            message = f"Expo indicated one or more problems: {messages}"
        super().__init__(message)


def _error_message(error: Any) -> Any:
    if isinstance(error, Mapping):
        return error.get("message", error.get("code"))
    return error
