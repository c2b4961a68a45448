from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from selfheal.core.metadata import BackupRecord

log = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


class BackupStore:
    """Flat, append-only directory of timestamped file copies."""

    def __init__(self, root: str | Path = ".selfheal-backups") -> None:
        self.root = Path(root)

    @staticmethod
    def timestamp(moment: datetime | None = None) -> str:
        stamp = (moment or datetime.now(UTC)).astimezone(UTC)
        iso = stamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        return iso.replace(":", "-").replace(".", "-")

    def backup_path_for(self, source: Path, stamp: str) -> Path:
        return self.root / f"{source.name}.{stamp}{BACKUP_SUFFIX}"

    def backup(self, source: str | Path) -> BackupRecord:
        source_path = Path(source)
        self.root.mkdir(parents=True, exist_ok=True)
        created_at = datetime.now(UTC)
        backup_path = self.backup_path_for(source_path, self.timestamp(created_at))
        while backup_path.exists():
            created_at = datetime.now(UTC)
            backup_path = self.backup_path_for(source_path, self.timestamp(created_at))
        backup_path.write_bytes(source_path.read_bytes())
        log.debug("Backed up %s to %s", source_path, backup_path)
        return BackupRecord(original_path=source_path, backup_path=backup_path, created_at=created_at)

    def restore(self, backup_path: str | Path, target_path: str | Path) -> None:
        Path(target_path).write_bytes(Path(backup_path).read_bytes())

    def list_backups(self) -> list[Path]:
        """Returns backups newest-first by name."""

        if not self.root.is_dir():
            return []
        backups = [child for child in self.root.iterdir() if child.is_file() and child.name.endswith(BACKUP_SUFFIX)]
        backups.sort(key=lambda path: path.name, reverse=True)
        return backups

    def prune(self, keep_last: int = 10) -> int:
        deleted = 0
        for path in self.list_backups()[max(keep_last, 0):]:
            path.unlink()
            deleted += 1
        if deleted:
            log.info("Pruned %s old backups from %s", deleted, self.root)
        return deleted
