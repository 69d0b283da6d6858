"""Build the configured delivery channels (PUSH_PROVIDER / EMAIL_PROVIDER)."""

from shortage_sync.config import EMAIL_PROVIDER, PUSH_PROVIDER
from shortage_sync.notify.gateway import HttpPushProvider
from shortage_sync.notify.mock import MockEmailSender, MockPushProvider
from shortage_sync.notify.protocol import EmailSender, PushProvider
from shortage_sync.notify.smtp import SmtpEmailSender


def get_push_provider(kind: str = PUSH_PROVIDER) -> PushProvider:
    kind = (kind or "mock").lower()
    if kind == "mock":
        return MockPushProvider()
    if kind == "http":
        return HttpPushProvider()
    raise ValueError(f"Unknown PUSH_PROVIDER: {kind!r}. Expected 'mock' or 'http'")


def get_email_sender(kind: str = EMAIL_PROVIDER) -> EmailSender | None:
    """The configured sender, or None when email delivery is disabled ('none')."""
    kind = (kind or "mock").lower()
    if kind == "none":
        return None
    if kind == "mock":
        return MockEmailSender()
    if kind == "smtp":
        return SmtpEmailSender()
    raise ValueError(f"Unknown EMAIL_PROVIDER: {kind!r}. Expected 'mock', 'smtp' or 'none'")
