from __future__ import annotations

import json
import os
from pathlib import Path

from selfheal.config.schema import PipelineConfig

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigLoader:
    """Loads and validates the JSON pipeline configuration."""

    @staticmethod
    def load(path: str | Path | None = None) -> PipelineConfig:
        if path is None:
            return ConfigLoader.from_env(PipelineConfig())
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return ConfigLoader.from_env(PipelineConfig.model_validate(payload))

    @staticmethod
    def from_env(config: PipelineConfig) -> PipelineConfig:
        probe_overrides: dict[str, object] = {}
        base_url = os.getenv("SELFHEAL_BASE_URL")
        if base_url:
            probe_overrides["base_url"] = base_url
        browser = os.getenv("SELFHEAL_BROWSER")
        if browser:
            probe_overrides["browser"] = browser
        headless = os.getenv("SELFHEAL_HEADLESS")
        if headless:
            probe_overrides["headless"] = headless.lower() in _TRUE_VALUES
        if not probe_overrides:
            return config
        probe = config.probe.model_validate({**config.probe.model_dump(), **probe_overrides})
        return config.model_copy(update={"probe": probe})
