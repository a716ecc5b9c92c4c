"""Concurrent dispatch of send batches.

One task per chunk, all started at once, with at most ``concurrency``
holding a transport slot at any time. Results are gathered in chunk
order regardless of completion order.
"""

from typing import Any, Iterable, Mapping, Optional
import asyncio
import logging

from expo_push.logging_config.context import bind_context
from expo_push.logging_config.performance import PerformanceTimer
from expo_push.push.chunk import Chunk
from expo_push.push.config import DEFAULT_PUSH_CONFIG, PushConfig
from expo_push.push.errors import TransportError
from expo_push.push.tickets import BatchError, BatchOutcome, Ticket, TicketList, Tickets
from expo_push.push.transport import PushTransport

logger = logging.getLogger(__name__)


def classify_response(chunk: Chunk, response: Any) -> BatchOutcome:
    """Map a parsed send response onto the outcome for ``chunk``.

    Priority: service-reported errors, then count mismatch, then tickets.
    """
    recipients = chunk.all_recipients()

    if not isinstance(response, Mapping):
        return BatchError.transport(
            chunk.index,
            recipients,
            TransportError(f"Expected a JSON object, got {type(response).__name__}"),
        )

    data = response.get("data")
    errors = response.get("errors")

    if errors:
        return BatchError.service_errors(chunk.index, recipients, errors=errors, data=data)

    if not isinstance(data, list) or len(data) != len(recipients):
        return BatchError.count_mismatch(chunk.index, recipients, data=data)

    # The service echoes no token back, so slot i belongs to recipient i.
    tickets = tuple(
        Ticket(data=dict(entry) if isinstance(entry, Mapping) else {"raw": entry}, token=token)
        for entry, token in zip(data, recipients)
    )
    return TicketList(chunk_index=chunk.index, tickets=tickets)


class DispatchEngine:
    """Send chunks over a transport with bounded concurrency."""

    def __init__(self, transport: PushTransport, config: Optional[PushConfig] = None):
        self.transport = transport
        self.config = config or DEFAULT_PUSH_CONFIG
        self._slots: Optional[asyncio.Semaphore] = None
        self._slots_loop: Optional[asyncio.AbstractEventLoop] = None
        self._active_count = 0
        self._peak_active = 0

    @property
    def concurrency(self) -> int:
        return self.config.concurrency

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneous transport calls seen so far."""
        return self._peak_active

    def _get_slots(self) -> asyncio.Semaphore:
        """Semaphore for the running loop (must be in async context).

        Rebuilt when the engine is reused on another event loop; a
        semaphore stays bound to the first loop that waits on it.
        """
        loop = asyncio.get_running_loop()
        if self._slots is None or self._slots_loop is not loop:
            self._slots = asyncio.Semaphore(self.config.concurrency)
            self._slots_loop = loop
        return self._slots

    async def dispatch(self, chunks: Iterable[Chunk]) -> Tickets:
        chunks = list(chunks)
        if not chunks:
            return Tickets([])

        tasks = [asyncio.ensure_future(self._send_chunk(chunk)) for chunk in chunks]
        outcomes = await asyncio.gather(*tasks)

        tickets = Tickets(outcomes)
        summary = tickets.summary()
        logger.info(
            "Dispatched %d batches: %d failed, %d ok tickets, %d error tickets",
            summary["batches"],
            summary["failed_batches"],
            summary["ok_tickets"],
            summary["error_tickets"],
        )
        return tickets

    async def _send_chunk(self, chunk: Chunk) -> BatchOutcome:
        bind_context(chunk_index=chunk.index)
        recipients = chunk.all_recipients()
        payload = chunk.as_payload()

        async with self._get_slots():
            self._active_count += 1
            self._peak_active = max(self._peak_active, self._active_count)
            try:
                with PerformanceTimer("push.send_batch"):
                    response = await self.transport.send_batch(payload)
            except TransportError as exc:
                outcome: BatchOutcome = BatchError.transport(chunk.index, recipients, exc)
            except Exception as exc:
                # Failures stay confined to this batch.
                logger.exception("Transport raised %s for batch %d", type(exc).__name__, chunk.index)
                outcome = BatchError.transport(chunk.index, recipients, exc)
            else:
                outcome = classify_response(chunk, response)
            finally:
                self._active_count -= 1

        if outcome.is_error:
            logger.warning(
                "Batch %d failed (%s): %s",
                chunk.index,
                outcome.kind.value,
                outcome.message,
                extra={"recipient_count": len(recipients), "error_kind": outcome.kind.value},
            )
        else:
            logger.debug("Batch %d accepted %d tickets", chunk.index, len(outcome))
        return outcome
