from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from selfheal.core.exceptions import PatchTargetNotFound
from selfheal.core.metadata import (
    ConfigAttributeEdit,
    Locator,
    LocatorKind,
    PatchResult,
    PatchTarget,
    SelectorMapEdit,
    SourceLocatorEdit,
    WaitTimeEdit,
)
from selfheal.core.selector_map import dump_selector_map, entry_locator, parse_selector_map, render_entry
from selfheal.logging.backups import BackupStore

log = logging.getLogger(__name__)

JAVA_BY_METHODS = {
    LocatorKind.ID: "id",
    LocatorKind.NAME: "name",
    LocatorKind.CLASS: "className",
    LocatorKind.CSS: "cssSelector",
    LocatorKind.XPATH: "xpath",
    LocatorKind.LINK_TEXT: "linkText",
    LocatorKind.PARTIAL_LINK_TEXT: "partialLinkText",
}

PYTHON_BY_CONSTANTS = {
    LocatorKind.ID: "ID",
    LocatorKind.NAME: "NAME",
    LocatorKind.CLASS: "CLASS_NAME",
    LocatorKind.CSS: "CSS_SELECTOR",
    LocatorKind.XPATH: "XPATH",
    LocatorKind.LINK_TEXT: "LINK_TEXT",
    LocatorKind.PARTIAL_LINK_TEXT: "PARTIAL_LINK_TEXT",
}

_STRING_LITERAL = r'"(?:[^"\\]|\\.)*"'
_PY_STRING_LITERAL = r"""(?:"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')"""


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True, slots=True)
class SourceShape:
    """One accepted way of binding a locator to a variable in source code."""

    label: str
    template: str
    render: Callable[[Locator], str]

    def compile(self, variable_name: str) -> re.Pattern[str]:
        return re.compile(self.template.format(name=re.escape(variable_name)))


SOURCE_SHAPES = (
    SourceShape(
        "java field",
        r"(?P<prefix>(?:(?:private|protected|public|static|final)\s+)*By\s+{name}\s*=\s*)By\.\w+\(\s*"
        + _STRING_LITERAL
        + r"\s*\)",
        lambda locator: f"By.{JAVA_BY_METHODS[locator.kind]}({_quote(locator.value)})",
    ),
    SourceShape(
        "java assignment",
        r"(?P<prefix>\b{name}\s*=\s*)By\.\w+\(\s*" + _STRING_LITERAL + r"\s*\)",
        lambda locator: f"By.{JAVA_BY_METHODS[locator.kind]}({_quote(locator.value)})",
    ),
    SourceShape(
        "python tuple",
        r"(?P<prefix>\b{name}\s*(?::\s*[\w\[\], ]+)?=\s*)\(\s*By\.[A-Z_]+\s*,\s*" + _PY_STRING_LITERAL + r"\s*\)",
        lambda locator: f"(By.{PYTHON_BY_CONSTANTS[locator.kind]}, {_quote(locator.value)})",
    ),
)


class PatchApplier:
    """Applies structured edits to framework files, always backing up first."""

    def __init__(self, backup_store: BackupStore) -> None:
        self.backup_store = backup_store

    def apply(self, target: PatchTarget) -> PatchResult:
        if isinstance(target, SelectorMapEdit):
            return self.update_selector_map(target)
        if isinstance(target, SourceLocatorEdit):
            return self.update_source_locator(target)
        if isinstance(target, ConfigAttributeEdit):
            return self.update_config_attribute(target)
        if isinstance(target, WaitTimeEdit):
            return self.update_wait_time(target)
        return PatchResult(success=False, file_path="", error=f"Unsupported patch target: {type(target).__name__}")

    def update_selector_map(self, edit: SelectorMapEdit) -> PatchResult:
        def transform(content: str) -> tuple[str, str]:
            selectors = parse_selector_map(content, edit.file)
            if edit.key not in selectors:
                raise PatchTargetNotFound(f"Selector '{edit.key}' not found in {edit.file}")
            old = entry_locator(selectors[edit.key])
            selectors[edit.key] = render_entry(selectors[edit.key], edit.new_locator)
            return dump_selector_map(selectors), f"Updated {edit.key}: {old} -> {edit.new_locator}"

        return self._edit(Path(edit.file), transform)

    def update_source_locator(self, edit: SourceLocatorEdit) -> PatchResult:
        def transform(content: str) -> tuple[str, str]:
            for shape in SOURCE_SHAPES:
                pattern = shape.compile(edit.variable_name)
                match = pattern.search(content)
                if not match:
                    continue
                replacement = shape.render(edit.new_locator)
                updated = pattern.sub(lambda found: found.group("prefix") + replacement, content)
                old = match.group(0)[len(match.group("prefix")):]
                return updated, f"Updated {edit.variable_name} ({shape.label}): {old} -> {replacement}"
            raise PatchTargetNotFound(f"Selector variable '{edit.variable_name}' not found in {edit.file}")

        return self._edit(Path(edit.file), transform)

    def update_config_attribute(self, edit: ConfigAttributeEdit) -> PatchResult:
        name = re.escape(edit.attribute)
        quoted = re.compile(rf"""(?<![\w.-])({name}\s*=\s*)(["'])(.*?)\2""")
        properties = re.compile(rf"^(\s*{name}\s*[=:]\s*)(.*?)\s*$", re.MULTILINE)

        def transform(content: str) -> tuple[str, str]:
            match = quoted.search(content)
            if match:
                updated = quoted.sub(lambda found: f"{found.group(1)}{found.group(2)}{edit.new_value}{found.group(2)}", content)
                return updated, f"Updated {edit.attribute}: {match.group(3)} -> {edit.new_value}"
            match = properties.search(content)
            if match:
                updated = properties.sub(lambda found: f"{found.group(1)}{edit.new_value}", content)
                return updated, f"Updated {edit.attribute}: {match.group(2)} -> {edit.new_value}"
            raise PatchTargetNotFound(f"Setting '{edit.attribute}' not found in {edit.file}")

        return self._edit(Path(edit.file), transform)

    def update_wait_time(self, edit: WaitTimeEdit) -> PatchResult:
        pattern = re.compile(rf"Duration\.ofSeconds\(\s*{int(edit.current_seconds)}L?\s*\)")

        def transform(content: str) -> tuple[str, str]:
            if not pattern.search(content):
                raise PatchTargetNotFound(f"No Duration.ofSeconds({edit.current_seconds}) in {edit.file}")
            updated = pattern.sub(f"Duration.ofSeconds({int(edit.new_seconds)})", content)
            return updated, f"Updated wait time: {edit.current_seconds}s -> {edit.new_seconds}s"

        return self._edit(Path(edit.file), transform)

    def restore(self, backup_path: str | Path, target_path: str | Path) -> PatchResult:
        try:
            self.backup_store.restore(backup_path, target_path)
        except OSError as exc:
            log.error("Restore of %s from %s failed: %s", target_path, backup_path, exc)
            return PatchResult(success=False, file_path=str(target_path), backup_path=str(backup_path), error=str(exc))
        log.info("Restored %s from %s", target_path, backup_path)
        return PatchResult(
            success=True,
            file_path=str(target_path),
            backup_path=str(backup_path),
            description=f"Restored from {Path(backup_path).name}",
        )

    def list_backups(self) -> list[Path]:
        return self.backup_store.list_backups()

    def prune(self, keep_last: int = 10) -> int:
        return self.backup_store.prune(keep_last)

    def _edit(self, path: Path, transform: Callable[[str], tuple[str, str]]) -> PatchResult:
        try:
            original = path.read_bytes()
            updated, description = transform(original.decode("utf-8"))
            record = self.backup_store.backup(path)
            path.write_bytes(updated.encode("utf-8"))
        except PatchTargetNotFound as exc:
            log.warning("Patch skipped: %s", exc)
            return PatchResult(success=False, file_path=str(path), error=str(exc))
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            log.error("Patch of %s failed: %s", path, exc)
            return PatchResult(success=False, file_path=str(path), error=str(exc))
        log.info("%s (%s)", description, path)
        return PatchResult(
            success=True,
            file_path=str(path),
            backup_path=str(record.backup_path),
            description=description,
        )

