"""Partitioning of notifications into size-bounded send batches."""

from dataclasses import dataclass, field
from typing import Iterable

from expo_push.push.config import CHUNK_LIMIT
from expo_push.push.notification import Notification


@dataclass
class Chunk:
    """One send request's worth of notifications.

    Holds (payload, recipient-subset) pairs as prepared notifications whose
    recipient counts add up to at most ``limit``.
    """

    limit: int = CHUNK_LIMIT
    notifications: list[Notification] = field(default_factory=list)
    index: int = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.recipient_count()

    def add(self, notification: Notification) -> None:
        if notification.count > self.remaining:
            raise ValueError(
                f"Chunk {self.index} has room for {self.remaining} recipients, "
                f"got {notification.count}"
            )
        self.notifications.append(notification)

    def recipient_count(self) -> int:
        return sum(n.count for n in self.notifications)

    def all_recipients(self) -> list[str]:
        """Tokens in request order; ticket ``i`` of the response belongs to token ``i``."""
        return [token for n in self.notifications for token in n.recipients]

    def as_payload(self) -> list[dict]:
        return [n.as_payload() for n in self.notifications]


def chunk_notifications(
    notifications: Iterable[Notification],
    limit: int = CHUNK_LIMIT,
) -> list[Chunk]:
    """Pack notifications greedily, left to right, into chunks of at most ``limit`` recipients.

    A notification with more recipients than fit in the current chunk is
    split: its payload is repeated and its recipients are handed out in
    order across as many chunks as needed. Notifications are never
    reordered and empty ones produce nothing.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    chunks: list[Chunk] = []
    current = Chunk(limit=limit, index=0)

    for notification in notifications:
        targets = notification.recipients
        while targets:
            if current.remaining <= 0:
                chunks.append(current)
                current = Chunk(limit=limit, index=len(chunks))

            count = min(len(targets), current.remaining)
            current.add(notification.prepare(targets[:count]))
            targets = targets[count:]

    if current.notifications:
        chunks.append(current)
    return chunks
