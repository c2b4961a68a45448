from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path

import pytest

from selfheal.config.schema import PipelineConfig, RunnerConfig
from selfheal.core.runner import TestCommand


@pytest.fixture()
def write_script(tmp_path):
    """Writes a small Python program that stands in for the test-run command."""

    def _write(body: str, name: str = "fake_suite.py") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def script_command(tmp_path, write_script):
    def _command(body: str, retry_arguments: list[str] | None = None) -> TestCommand:
        script = write_script(body)
        return TestCommand(
            RunnerConfig(
                command=[sys.executable, str(script)],
                filter_argument="{filter}",
                retry_arguments=retry_arguments or [],
                working_dir=str(tmp_path),
                timeout_seconds=30,
            )
        )

    return _command


@pytest.fixture()
def selector_map_file(tmp_path):
    selectors_dir = tmp_path / "selectors"
    selectors_dir.mkdir()
    path = selectors_dir / "login-selectors.json"
    path.write_text(
        json.dumps(
            {
                "emailInput": {"type": "css", "selector": 'input[name="Email"]'},
                "passwordInput": {"type": "id", "selector": "Password"},
                "loginButton": {"kind": "css", "value": "form > div > div > input.login-button"},
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def pipeline_config(tmp_path):
    return PipelineConfig.model_validate(
        {
            "runner": {"command": [sys.executable, "suite.py"], "filter_argument": "{filter}", "working_dir": str(tmp_path)},
            "probe": {"base_url": "http://localhost:8000/login"},
            "patch": {
                "backup_root": str(tmp_path / "backups"),
                "audit_root": str(tmp_path / "artifacts"),
                "selector_map_dir": str(tmp_path / "selectors"),
                "keep_last": 2,
            },
        }
    )
