"""Mock delivery channels: every push and email is appended to a JSON outbox file."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from shortage_sync.config import EMAIL_OUTBOX_PATH, PUSH_OUTBOX_PATH
from shortage_sync.models.sync import PushResult
from shortage_sync.notify.templates import PushMessage
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.notify.mock")


class _JsonOutbox:
    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        with self._path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, list) else data.get("value", [])

    def append(self, item: dict[str, Any]) -> None:
        items = self.load()
        items.append(item)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(items, f, indent=2, ensure_ascii=False, default=str)
        logger.debug("notify.outbox_written", path=str(self._path), count=len(items))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MockPushProvider:
    """Accepts every token except those listed in `rejected_tokens`."""

    def __init__(self, outbox_path: Path = PUSH_OUTBOX_PATH, rejected_tokens: set[str] | None = None):
        self._outbox = _JsonOutbox(outbox_path)
        self._rejected = set(rejected_tokens or ())
        logger.info("push_provider.init", provider="mock", outbox_path=str(outbox_path))

    @property
    def sent(self) -> list[dict[str, Any]]:
        return self._outbox.load()

    async def send_multicast(self, tokens: list[str], message: PushMessage) -> PushResult:
        failed = [t for t in tokens if t in self._rejected]
        delivered = [t for t in tokens if t not in self._rejected]
        self._outbox.append(
            {
                "sent_at": _now_iso(),
                "tokens": delivered,
                "notification": {"title": message.title, "body": message.body},
                "data": message.data,
            }
        )
        logger.info("push_provider.sent", provider="mock", delivered=len(delivered), failed=len(failed))
        return PushResult(
            success_count=len(delivered),
            failure_count=len(failed),
            failed_tokens=failed,
            errors=[f"{t}: registration-token-not-registered" for t in failed],
        )


class MockEmailSender:
    """Accepts every recipient except those listed in `rejected_recipients`."""

    def __init__(self, outbox_path: Path = EMAIL_OUTBOX_PATH, rejected_recipients: set[str] | None = None):
        self._outbox = _JsonOutbox(outbox_path)
        self._rejected = set(rejected_recipients or ())
        logger.info("email_sender.init", provider="mock", outbox_path=str(outbox_path))

    @property
    def sent(self) -> list[dict[str, Any]]:
        return self._outbox.load()

    async def send(self, to: str, subject: str, html: str) -> bool:
        if to in self._rejected:
            logger.warning("email_sender.rejected", provider="mock", to=to)
            return False
        self._outbox.append({"sent_at": _now_iso(), "to": to, "subject": subject, "html": html})
        logger.info("email_sender.sent", provider="mock", to=to)
        return True
