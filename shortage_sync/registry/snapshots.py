"""Raw snapshots of the last fetched registry files, with dated backups of the previous one."""

import shutil
from datetime import date
from pathlib import Path
from typing import Optional

from shortage_sync.config import BACKUP_DIR, SNAPSHOT_DIR
from shortage_sync.models.registry import RegistryDocument
from shortage_sync.registry.reader import decode_registry_bytes
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.registry.snapshots")


class SnapshotStore:
    """One current snapshot per file in snapshot_dir; older copies in backup_dir as <stem>_<YYYY-MM-DD>.txt."""

    def __init__(self, snapshot_dir: str | Path = SNAPSHOT_DIR, backup_dir: str | Path = BACKUP_DIR):
        self._snapshot_dir = Path(snapshot_dir)
        self._backup_dir = Path(backup_dir)

    @classmethod
    def in_directory(cls, root: str | Path) -> "SnapshotStore":
        """Store rooted at `root`, backups under root/backups."""
        return cls(snapshot_dir=root, backup_dir=Path(root) / "backups")

    def path_for(self, filename: str) -> Path:
        return self._snapshot_dir / filename

    def previous_lines(self, filename: str) -> Optional[list[str]]:
        """Decoded lines of the stored snapshot, or None if there is none yet."""
        path = self.path_for(filename)
        if not path.is_file():
            return None
        return decode_registry_bytes(path.read_bytes(), filename)

    def save(self, document: RegistryDocument, today: Optional[date] = None) -> Path:
        """Back up the current snapshot (if any), then store the new raw bytes."""
        self._snapshot_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(document.filename)
        if path.is_file():
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            stamp = (today or date.today()).isoformat()
            backup_path = self._backup_dir / f"{Path(document.filename).stem}_{stamp}.txt"
            shutil.copyfile(path, backup_path)
            logger.debug("snapshots.backup_created", path=str(backup_path))
        path.write_bytes(document.raw)
        logger.info("snapshots.saved", path=str(path), size=len(document.raw))
        return path
