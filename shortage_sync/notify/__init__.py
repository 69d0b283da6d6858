"""Notification fan-out: templates, delivery channels, and the fan-out engine."""

from shortage_sync.notify.fanout import fan_out, match_subscriptions, notify_status_change
from shortage_sync.notify.gateway import HttpPushProvider
from shortage_sync.notify.mock import MockEmailSender, MockPushProvider
from shortage_sync.notify.protocol import EmailSender, PushProvider
from shortage_sync.notify.providers import get_email_sender, get_push_provider
from shortage_sync.notify.smtp import SmtpEmailSender
from shortage_sync.notify.templates import (
    EmailContent,
    PushMessage,
    build_alert_email,
    build_push_message,
)

__all__ = [
    "PushProvider",
    "EmailSender",
    "MockPushProvider",
    "MockEmailSender",
    "HttpPushProvider",
    "SmtpEmailSender",
    "get_push_provider",
    "get_email_sender",
    "PushMessage",
    "EmailContent",
    "build_push_message",
    "build_alert_email",
    "match_subscriptions",
    "notify_status_change",
    "fan_out",
]
