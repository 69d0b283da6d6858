"""Delivery channel interfaces used by the fan-out engine."""

from typing import Protocol

from shortage_sync.models.sync import PushResult
from shortage_sync.notify.templates import PushMessage


class PushProvider(Protocol):
    """Sends one multicast push to a set of device tokens."""

    async def send_multicast(self, tokens: list[str], message: PushMessage) -> PushResult:
        """Deliver `message` to every token. Per-token failures land in PushResult.failed_tokens."""
        ...


class EmailSender(Protocol):
    """Sends one HTML email."""

    async def send(self, to: str, subject: str, html: str) -> bool:
        """True when the message was accepted for delivery."""
        ...
