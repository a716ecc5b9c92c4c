"""Receipt lookup results.

A receipt is the delayed delivery outcome of an ok ticket. Keep looking
up ``unresolved_ids`` until none remain or your own deadline (a day is
typical) passes; the client does not poll on its own.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

from expo_push.push.config import TicketStatus
from expo_push.push.errors import ReceiptsWithErrors, ServerError, explain
from expo_push.push.tokens import extract_push_token


@dataclass(frozen=True)
class Receipt:
    """Delivery outcome for one receipt id."""

    receipt_id: str
    data: dict

    @property
    def ok(self) -> bool:
        return self.data.get("status") == TicketStatus.OK.value

    @property
    def is_error(self) -> bool:
        return self.data.get("status") == TicketStatus.ERROR.value

    @property
    def message(self) -> Optional[str]:
        return self.data.get("message")

    @property
    def details(self) -> dict:
        return self.data.get("details") or {}

    @property
    def error_code(self) -> Optional[str]:
        return self.details.get("error")

    @property
    def original_push_token(self) -> Optional[str]:
        if self.ok:
            return None
        return extract_push_token(self.message)

    def explain(self) -> str:
        return explain(self.error_code)


class Receipts:
    """Result of one receipt lookup.

    When the service rejected the whole call, ``error`` holds a
    ``ReceiptsWithErrors`` and every requested id stays unresolved.
    """

    def __init__(
        self,
        results: list[Receipt],
        requested_ids: Iterable[str],
        error: Optional[ReceiptsWithErrors] = None,
    ):
        self.results = list(results)
        self.requested_ids = list(requested_ids)
        self.error = error

    def __iter__(self) -> Iterator[Receipt]:
        """Ok receipts only."""
        return (receipt for receipt in self.results if receipt.ok)

    def __len__(self) -> int:
        """Number of ok receipts, matching iteration."""
        return sum(1 for receipt in self.results if receipt.ok)

    def errors(self) -> Iterator[Union[ReceiptsWithErrors, Receipt]]:
        if self.error is not None:
            yield self.error
        for receipt in self.results:
            if receipt.is_error:
                yield receipt

    @property
    def unresolved_ids(self) -> list[str]:
        returned = {receipt.receipt_id for receipt in self.results}
        return [receipt_id for receipt_id in self.requested_ids if receipt_id not in returned]

    @property
    def resolved(self) -> bool:
        return not self.unresolved_ids

    def raise_for_errors(self) -> "Receipts":
        """Raise if the whole lookup was rejected by the service."""
        if self.error is not None:
            raise self.error
        return self


def resolve_receipts(ids: Iterable[str], response: Any) -> Receipts:
    """Turn a parsed getReceipts body into ``Receipts``.

    Raises:
        ServerError: the body is not ``{"data": {id: receipt}, ...}``.
    """
    requested_ids = list(ids)

    if not isinstance(response, Mapping):
        raise ServerError(
            "Expected a mapping of receipt id to receipt, but got some other data structure"
        )

    errors = response.get("errors")
    if errors:
        return Receipts(
            results=[],
            requested_ids=requested_ids,
            error=ReceiptsWithErrors(errors=list(errors), data=response),
        )

    data = response.get("data")
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ServerError(
            "Expected a mapping of receipt id to receipt, but got some other data structure"
        )

    results = [
        Receipt(
            receipt_id=receipt_id,
            data=dict(value) if isinstance(value, Mapping) else {"status": None, "raw": value},
        )
        for receipt_id, value in data.items()
    ]
    return Receipts(results=results, requested_ids=requested_ids)
