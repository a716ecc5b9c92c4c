"""Send results: tickets, per-batch outcomes and the aggregated result set.

Each send batch ends in exactly one ``BatchOutcome``: a ``TicketList``
with one ticket per requested recipient, or a ``BatchError`` describing
why no tickets could be trusted. ``Tickets`` keeps the outcomes in chunk
order, which is what makes positional token correlation and receipt id
batching deterministic.

Failed batches never show up in ``ok_tickets()``; iterate ``errors()``
(or call ``raise_for_errors()``) to see them.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from expo_push.push.config import RECEIPT_CHUNK_LIMIT, BatchErrorKind, TicketStatus
from expo_push.push.errors import (
    PushError,
    TicketError,
    TicketsExpectationFailed,
    TicketsWithErrors,
    TransportError,
    explain,
)
from expo_push.push.tokens import extract_push_token


@dataclass(frozen=True)
class Ticket:
    """Immediate result for one recipient of a send request.

    - ``ok`` tickets hold the receipt id in ``id``
    - ``error`` tickets hold ``message`` and ``details``
    """

    data: dict
    token: Optional[str] = None

    @property
    def status(self) -> Optional[str]:
        return self.data.get("status")

    @property
    def ok(self) -> bool:
        return self.status == TicketStatus.OK.value

    @property
    def is_error(self) -> bool:
        return self.status == TicketStatus.ERROR.value

    @property
    def id(self) -> Optional[str]:
        return self.data.get("id")

    @property
    def message(self) -> Optional[str]:
        return self.data.get("message")

    @property
    def details(self) -> dict:
        return self.data.get("details") or {}

    @property
    def original_push_token(self) -> Optional[str]:
        """Token this error concerns; None for ok tickets."""
        if self.ok:
            return None
        return extract_push_token(self.message) or self.token

    def explain(self) -> str:
        return explain(self.details.get("error"))


@dataclass(frozen=True)
class TicketList:
    """Successful batch: tickets in the same order as the batch's recipients."""

    chunk_index: int
    tickets: tuple[Ticket, ...] = ()
    is_error = False

    def __iter__(self) -> Iterator[Ticket]:
        return iter(self.tickets)

    def __len__(self) -> int:
        return len(self.tickets)


@dataclass(frozen=True)
class BatchError:
    """Failed batch: one of transport failure, service errors or count mismatch."""

    chunk_index: int
    kind: BatchErrorKind
    message: str
    recipients: tuple[str, ...] = ()
    errors: list = field(default_factory=list)
    data: Any = None
    expected_count: Optional[int] = None
    cause: Optional[BaseException] = None
    is_error = True

    @classmethod
    def transport(cls, chunk_index: int, recipients: list[str], exc: Exception) -> "BatchError":
        return cls(
            chunk_index=chunk_index,
            kind=BatchErrorKind.TRANSPORT,
            message=str(exc),
            recipients=tuple(recipients),
            cause=exc,
        )

    @classmethod
    def service_errors(
        cls, chunk_index: int, recipients: list[str], errors: list, data: Any
    ) -> "BatchError":
        return cls(
            chunk_index=chunk_index,
            kind=BatchErrorKind.SERVICE_ERRORS,
            message=str(TicketsWithErrors(errors=errors, data=data)),
            recipients=tuple(recipients),
            errors=list(errors),
            data=data,
        )

    @classmethod
    def count_mismatch(cls, chunk_index: int, recipients: list[str], data: Any) -> "BatchError":
        return cls(
            chunk_index=chunk_index,
            kind=BatchErrorKind.COUNT_MISMATCH,
            message=str(TicketsExpectationFailed(expected_count=len(recipients), data=data)),
            recipients=tuple(recipients),
            data=data,
            expected_count=len(recipients),
        )

    def to_exception(self) -> PushError:
        """Exception equivalent of this outcome, for strict callers."""
        if self.kind == BatchErrorKind.SERVICE_ERRORS:
            return TicketsWithErrors(errors=self.errors, data=self.data)
        if self.kind == BatchErrorKind.COUNT_MISMATCH:
            return TicketsExpectationFailed(expected_count=self.expected_count or 0, data=self.data)
        if isinstance(self.cause, PushError):
            return self.cause
        return TransportError(self.message)


BatchOutcome = Union[TicketList, BatchError]


class Tickets:
    """All outcomes of one dispatch, in chunk order.

    - ``ok_tickets()``: every ok ticket of every successful batch
    - ``errors()``: every failed batch and every error ticket
    - ``id_batches()``: receipt ids sliced for receipt lookups
    """

    def __init__(self, outcomes: list[BatchOutcome]):
        self._outcomes = list(outcomes)

    def __iter__(self) -> Iterator[BatchOutcome]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    @property
    def outcomes(self) -> list[BatchOutcome]:
        return list(self._outcomes)

    def ok_tickets(self) -> Iterator[Ticket]:
        for outcome in self._outcomes:
            if outcome.is_error:
                continue
            for ticket in outcome:
                if ticket.ok:
                    yield ticket

    def errors(self) -> Iterator[Union[BatchError, Ticket]]:
        for outcome in self._outcomes:
            if outcome.is_error:
                yield outcome
                continue
            for ticket in outcome:
                if ticket.is_error:
                    yield ticket

    def batch_errors(self) -> list[BatchError]:
        return [outcome for outcome in self._outcomes if outcome.is_error]

    @property
    def has_errors(self) -> bool:
        return next(self.errors(), None) is not None

    def raise_for_errors(self, include_tickets: bool = False) -> "Tickets":
        """Raise for the first failed batch; return self when there is none.

        Error tickets are left in the result, next to the ok tickets whose
        receipt ids the caller still needs. Pass ``include_tickets=True``
        to raise ``TicketError`` for them too, in ``errors()`` order.
        """
        for error in self.errors():
            if isinstance(error, BatchError):
                raise error.to_exception()
            if include_tickets:
                raise TicketError(error)
        return self

    def ids(self) -> list[str]:
        return [ticket.id for ticket in self.ok_tickets()]

    def token_by_receipt_id(self) -> dict[str, Optional[str]]:
        return {ticket.id: ticket.token for ticket in self.ok_tickets()}

    def id_batches(self, limit: int = RECEIPT_CHUNK_LIMIT) -> list[list[str]]:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        ids = self.ids()
        return [ids[i:i + limit] for i in range(0, len(ids), limit)]

    def summary(self) -> dict:
        ok = error_tickets = 0
        for outcome in self._outcomes:
            if outcome.is_error:
                continue
            for ticket in outcome:
                if ticket.ok:
                    ok += 1
                elif ticket.is_error:
                    error_tickets += 1
        return {
            "batches": len(self._outcomes),
            "failed_batches": len(self.batch_errors()),
            "ok_tickets": ok,
            "error_tickets": error_tickets,
        }
