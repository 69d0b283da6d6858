"""Shared test helpers: isolated data dirs, fresh SQLite files, registry file writers, seed rows, fakes."""

import os
import sys
import tempfile
from pathlib import Path

# Point data/output dirs at a scratch area before shortage_sync.config is imported.
_SCRATCH = Path(tempfile.mkdtemp(prefix="shortage_sync_tests_"))
os.environ.setdefault("DATA_DIR", str(_SCRATCH / "data"))
os.environ.setdefault("OUTPUT_DIR", str(_SCRATCH / "output"))
os.environ["DATABASE_URL"] = f"sqlite:///{_SCRATCH / 'default.sqlite'}"
os.environ["TRACING_ENABLED"] = "false"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from shortage_sync.db import get_session, init_db  # noqa: E402
from shortage_sync.db.models import Alert, Product, PushToken, User  # noqa: E402
from shortage_sync.models.sync import PushResult  # noqa: E402
from shortage_sync.registry.reader import default_filenames, CATALOG, COMPOSITION, SHORTAGE  # noqa: E402

ENCODING = "latin-1"


def fresh_db() -> str:
    """Point the engine at a new empty SQLite file and return its URL."""
    handle = tempfile.NamedTemporaryFile(suffix=".sqlite", delete=False, dir=_SCRATCH)
    handle.close()
    url = f"sqlite:///{handle.name}"
    init_db(database_url=url)
    return url


def scratch_dir() -> Path:
    return Path(tempfile.mkdtemp(dir=_SCRATCH))


def catalog_line(code: str, name: str, form: str = "comprimé", route: str = "orale", manufacturer: str = "SANOFI") -> str:
    return "\t".join(
        [code, name, form, route, "Autorisation active", "Procédure nationale", "Commercialisée",
         "01/01/2000", "", "", manufacturer, "Non"]
    )


def composition_line(code: str, substance: str, nature: str = "SA") -> str:
    return "\t".join([code, "comprimé", "12345", substance, "1000 mg", "un comprimé", nature, "1"])


def shortage_line(
    code: str,
    status_text: str,
    start_date: str = "2024-01-01",
    level: str = "2",
    end_date: str = "",
    url: str = "",
) -> str:
    return "\t".join([code, "3400930000000", level, status_text, start_date, end_date, "2024-01-02", url])


def write_registry_files(
    directory: Path,
    catalog: list[str] | None = None,
    compositions: list[str] | None = None,
    shortages: list[str] | None = None,
) -> Path:
    """Write latin-1 registry files; a None table is left out (simulates an unavailable source)."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    names = default_filenames()
    for key, lines in ((CATALOG, catalog), (COMPOSITION, compositions), (SHORTAGE, shortages)):
        path = directory / names[key]
        if lines is None:
            if path.exists():
                path.unlink()
            continue
        path.write_bytes(("\r\n".join(lines) + "\r\n").encode(ENCODING))
    return directory


def seed_product(code: str, name: str = "", status: str = "AVAILABLE") -> int:
    with get_session() as session:
        product = Product(product_code=code, name=name or f"Product {code}", status=status)
        session.add(product)
        session.flush()
        return product.id


def seed_user(
    email: str,
    name: str | None = None,
    notify_push: bool = True,
    notify_email: bool = False,
    tokens: list[str] | None = None,
) -> int:
    with get_session() as session:
        user = User(email=email, name=name, notify_push=notify_push, notify_email=notify_email)
        session.add(user)
        session.flush()
        for token in tokens or []:
            session.add(PushToken(user_id=user.id, token=token, platform="android", is_active=True))
        return user.id


def seed_alert(user_id: int, product_id: int, alert_type: str, is_active: bool = True, last_notified=None) -> int:
    with get_session() as session:
        alert = Alert(
            user_id=user_id,
            product_id=product_id,
            type=alert_type,
            is_active=is_active,
            last_notified=last_notified,
        )
        session.add(alert)
        session.flush()
        return alert.id


class RecordingPushProvider:
    """In-memory push provider; tokens in `rejected` fail."""

    def __init__(self, rejected: set[str] | None = None, raises: Exception | None = None):
        self.calls: list[tuple[list[str], object]] = []
        self.rejected = set(rejected or ())
        self.raises = raises

    async def send_multicast(self, tokens, message) -> PushResult:
        self.calls.append((list(tokens), message))
        if self.raises is not None:
            raise self.raises
        failed = [t for t in tokens if t in self.rejected]
        return PushResult(
            success_count=len(tokens) - len(failed),
            failure_count=len(failed),
            failed_tokens=failed,
            errors=[f"{t}: rejected" for t in failed],
        )


class RecordingEmailSender:
    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for = set(fail_for or ())

    async def send(self, to: str, subject: str, html: str) -> bool:
        if to in self.fail_for:
            raise RuntimeError("smtp refused")
        self.sent.append((to, subject, html))
        return True
