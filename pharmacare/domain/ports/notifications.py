from __future__ import annotations

from typing import Protocol


class Notifier(Protocol):
    """Outbound message transport."""

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """Deliver a message, raising :class:`DeliveryError` on failure."""
        ...
