from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from selfheal.core.metadata import Locator, PatchResult


class PatchAuditLogger:
    """Appends one JSON line per patch attempt."""

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.history_path = self.root / "patch_history.jsonl"

    def write(
        self,
        result: PatchResult,
        key: str | None = None,
        old_locator: Locator | None = None,
        new_locator: Locator | None = None,
    ) -> None:
        payload = {
            "recorded_at": datetime.now(UTC).isoformat(),
            "key": key,
            "file_path": result.file_path,
            "old_locator": _locator_payload(old_locator),
            "new_locator": _locator_payload(new_locator),
            "success": result.success,
            "description": result.description,
            "backup_path": result.backup_path,
            "error": result.error,
        }
        with self.history_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload) + "\n")

    def read_history(self) -> list[dict[str, Any]]:
        if not self.history_path.exists():
            return []
        entries = []
        with self.history_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    entries.append(json.loads(line))
        return entries


def _locator_payload(locator: Locator | None) -> dict[str, str] | None:
    if locator is None:
        return None
    return {"kind": locator.kind.value, "value": locator.value}
