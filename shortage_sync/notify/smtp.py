"""SMTP email sender. smtplib is blocking, so each send runs in a worker thread."""

import asyncio
import smtplib
from email.message import EmailMessage

from shortage_sync.config import (
    SMTP_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_STARTTLS,
    SMTP_USER,
)
from shortage_sync.exceptions import DeliveryFailure
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.notify.smtp")


class SmtpEmailSender:
    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        sender: str = SMTP_FROM,
        starttls: bool = SMTP_STARTTLS,
        timeout: float = 30.0,
    ):
        if not sender:
            raise ValueError("SMTP_FROM or SMTP_USER must be set when EMAIL_PROVIDER=smtp")
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._starttls = starttls
        self._timeout = timeout
        logger.info("email_sender.init", provider="smtp", host=host, port=port)

    def _build(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Ce message nécessite un client email compatible HTML.")
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_blocking(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._starttls:
                smtp.starttls()
            if self._user:
                smtp.login(self._user, self._password)
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, html: str) -> bool:
        msg = self._build(to, subject, html)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(to, f"{type(e).__name__}: {e}") from e
        logger.info("email_sender.sent", provider="smtp", to=to)
        return True
