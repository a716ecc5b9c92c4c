"""Dispatch Context Management.

Context variables binding a dispatch id and extra fields (chunk index,
recipient count, ...) to every log entry emitted while a send or a
receipt lookup is in flight. Tasks spawned inside the context inherit
a copy of it.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_dispatch_id_var: ContextVar[str] = ContextVar("dispatch_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_dispatch_id() -> str:
    """Generate a unique dispatch ID using UUID4."""
    return str(uuid.uuid4())


def get_dispatch_id() -> str:
    """Get the current dispatch ID from context."""
    return _dispatch_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    dispatch_id = _dispatch_id_var.get()
    if dispatch_id:
        ctx["dispatch_id"] = dispatch_id
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


def bind_context(**kwargs: Any) -> None:
    """Add key-value pairs to the current context only.

    Inside an asyncio task this affects that task's copy of the context,
    so sibling batches never see each other's fields.
    """
    current = _extra_context_var.get()
    _extra_context_var.set({**current, **kwargs})


@dataclass
class DispatchContext:
    """Context manager for dispatch-scoped logging context.

    Example:
        with DispatchContext(extra={"operation": "send"}):
            logger.info("sending")  # includes dispatch_id, operation
    """

    dispatch_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.dispatch_id:
            self.dispatch_id = generate_dispatch_id()

    def __enter__(self) -> "DispatchContext":
        self._tokens = [
            _dispatch_id_var.set(self.dispatch_id),
            _extra_context_var.set(self.extra.copy()),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        dispatch_token, extra_token = self._tokens
        _extra_context_var.reset(extra_token)
        _dispatch_id_var.reset(dispatch_token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        bind_context(**kwargs)
        self.extra.update(kwargs)
