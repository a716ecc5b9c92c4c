"""Push client for the Expo push service.

Sends notifications (chunked, concurrently) and looks up receipts.
The underlying HTTP connection pool is opened on first use and kept
until ``aclose()``.

Example:
    async with PushClient(PushConfig(access_token="...")) as client:
        tickets = await client.send([
            Notification().to(tokens).with_title("Hi").with_body("Hello"),
        ])
        for error in tickets.errors():
            ...
        for receipts in await client.receipts_for(tickets):
            ...
"""

from typing import Iterable, Optional
import logging

from expo_push.logging_config.context import DispatchContext
from expo_push.logging_config.performance import PerformanceTimer
from expo_push.push.chunk import chunk_notifications
from expo_push.push.config import DEFAULT_PUSH_CONFIG, PushConfig
from expo_push.push.dispatch import DispatchEngine
from expo_push.push.errors import InvalidArgument
from expo_push.push.notification import Notification
from expo_push.push.receipts import Receipts, resolve_receipts
from expo_push.push.tickets import Tickets
from expo_push.push.transport import HttpxTransport, PushTransport

logger = logging.getLogger(__name__)


class PushClient:
    """Sends notifications and fetches receipts through a ``PushTransport``."""

    def __init__(
        self,
        config: Optional[PushConfig] = None,
        transport: Optional[PushTransport] = None,
    ):
        self._config = config or DEFAULT_PUSH_CONFIG
        self._transport = transport or HttpxTransport(self._config)
        self._engine = DispatchEngine(self._transport, self._config)

    @property
    def config(self) -> PushConfig:
        return self._config

    @property
    def engine(self) -> DispatchEngine:
        return self._engine

    async def __aenter__(self) -> "PushClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        close = getattr(self._transport, "aclose", None)
        if close is not None:
            await close()

    def notification(self) -> Notification:
        return Notification()

    # ── Sending ─────────────────────────────────────────────────────

    async def send(self, notifications: Iterable[Notification]) -> Tickets:
        """Send notifications; per-batch and per-recipient failures are returned, not raised."""
        chunks = chunk_notifications(notifications, limit=self._config.chunk_limit)
        with DispatchContext(extra={"operation": "send"}) as ctx:
            logger.info(
                "Sending %d recipients in %d batches",
                sum(chunk.recipient_count() for chunk in chunks),
                len(chunks),
            )
            tickets = await self._engine.dispatch(chunks)
            logger.debug("Send finished in %.1fms", ctx.elapsed_ms)
        return tickets

    async def send_strict(self, notifications: Iterable[Notification]) -> Tickets:
        """Like ``send`` but raises the first failed batch.

        Per-recipient error tickets are returned, not raised.
        """
        tickets = await self.send(notifications)
        return tickets.raise_for_errors()

    # ── Receipts ────────────────────────────────────────────────────

    async def receipts(self, receipt_ids: Iterable[str]) -> Receipts:
        """Look up receipts for at most ``receipt_chunk_limit`` ids.

        Raises:
            TransportError: the service could not be reached.
            ServerError: the response is not a receipt mapping.
        """
        ids = list(receipt_ids)
        if len(ids) > self._config.receipt_chunk_limit:
            raise InvalidArgument(
                f"At most {self._config.receipt_chunk_limit} receipt ids per lookup, got {len(ids)}; "
                "use Tickets.id_batches() to split them"
            )

        with DispatchContext(extra={"operation": "receipts"}):
            with PerformanceTimer("push.fetch_receipts"):
                response = await self._transport.fetch_receipts(ids)
            receipts = resolve_receipts(ids, response)

            if receipts.error is not None:
                logger.warning("Receipt lookup rejected: %s", receipts.error.message)
            else:
                logger.info(
                    "Resolved %d of %d receipts",
                    len(ids) - len(receipts.unresolved_ids),
                    len(ids),
                )
        return receipts

    async def receipts_for(self, tickets: Tickets) -> list[Receipts]:
        """One receipt lookup per id batch of ``tickets``, in order."""
        results = []
        for batch in tickets.id_batches(self._config.receipt_chunk_limit):
            results.append(await self.receipts(batch))
        return results
