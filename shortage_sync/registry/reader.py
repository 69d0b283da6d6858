"""Registry File Reader: fetch the three BDPM files remotely or from a local directory.

Files are latin-1 encoded, tab separated, one record per line. The reader only reads;
persisting raw bytes as a snapshot is the caller's choice (see snapshots.py).
"""

import threading
from pathlib import Path

import httpx

from shortage_sync.config import (
    BDPM_BASE_URL,
    BDPM_CATALOG_FILE,
    BDPM_COMPOSITION_FILE,
    BDPM_FETCH_TIMEOUT_SECONDS,
    BDPM_SHORTAGE_FILE,
    BDPM_SOURCE_DIR,
)
from shortage_sync.exceptions import DecodeError, SourceUnavailable
from shortage_sync.models.registry import RegistryDocument
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.registry.reader")

CATALOG = "catalog"
COMPOSITION = "composition"
SHORTAGE = "shortage"
FILE_KEYS = (CATALOG, COMPOSITION, SHORTAGE)

REGISTRY_ENCODING = "latin-1"


def default_filenames() -> dict[str, str]:
    return {
        CATALOG: BDPM_CATALOG_FILE,
        COMPOSITION: BDPM_COMPOSITION_FILE,
        SHORTAGE: BDPM_SHORTAGE_FILE,
    }


def decode_registry_bytes(raw: bytes, file_key: str = "") -> list[str]:
    """Decode latin-1 bytes and split into records, dropping blank lines."""
    try:
        text = raw.decode(REGISTRY_ENCODING)
    except (UnicodeDecodeError, AttributeError) as e:
        raise DecodeError(file_key, str(e)) from e
    return [line.rstrip("\r") for line in text.split("\n") if line.strip()]


class RegistryReader:
    """Reads registry files from BDPM_BASE_URL, or from source_dir when one is given."""

    def __init__(
        self,
        base_url: str = BDPM_BASE_URL,
        source_dir: str | Path | None = None,
        timeout: float = BDPM_FETCH_TIMEOUT_SECONDS,
        filenames: dict[str, str] | None = None,
        http_client: httpx.Client | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        raw_dir = source_dir if source_dir is not None else BDPM_SOURCE_DIR
        self._source_dir = Path(raw_dir) if raw_dir else None
        self._timeout = timeout
        self._filenames = {**default_filenames(), **(filenames or {})}
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = threading.Lock()

    @property
    def is_local(self) -> bool:
        return self._source_dir is not None

    def filename(self, file_key: str) -> str:
        if file_key not in self._filenames:
            raise ValueError(f"Unknown registry file: {file_key!r}. Known: {list(self._filenames)}")
        return self._filenames[file_key]

    def read(self, file_key: str) -> RegistryDocument:
        """Return the decoded file. Raises SourceUnavailable or DecodeError."""
        filename = self.filename(file_key)
        raw = self._read_local(file_key, filename) if self.is_local else self._fetch_remote(file_key, filename)
        lines = decode_registry_bytes(raw, file_key)
        logger.info(
            "registry.read",
            file_key=file_key,
            filename=filename,
            lines=len(lines),
            size_kb=round(len(raw) / 1024, 1),
            source="local" if self.is_local else "remote",
        )
        return RegistryDocument(file_key=file_key, filename=filename, raw=raw, lines=lines)

    def _read_local(self, file_key: str, filename: str) -> bytes:
        path = self._source_dir / filename
        if not path.is_file():
            raise SourceUnavailable(file_key, f"file not found: {path}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise SourceUnavailable(file_key, str(e)) from e

    def _get_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self._timeout),
                    follow_redirects=True,
                )
            return self._client

    def _fetch_remote(self, file_key: str, filename: str) -> bytes:
        url = f"{self._base_url}/{filename}"
        logger.debug("registry.fetch.start", file_key=file_key, url=url)
        try:
            response = self._get_client().get(url)
        except httpx.HTTPError as e:
            raise SourceUnavailable(file_key, f"{type(e).__name__}: {e}") from e
        if not response.is_success:
            raise SourceUnavailable(file_key, f"HTTP {response.status_code} for {url}")
        return response.content

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "RegistryReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
