from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class RunnerConfig(BaseModel):
    command: list[str] = Field(default_factory=lambda: ["mvn", "test"])
    filter_argument: str = "-Dtest={filter}"
    retry_arguments: list[str] = Field(default_factory=lambda: ["-DfailIfNoTests=false"])
    working_dir: str = "."
    timeout_seconds: int = 600

    @field_validator("command")
    @classmethod
    def validate_command(cls, value: list[str]) -> list[str]:
        if not value or not value[0].strip():
            raise ValueError("command must name an executable")
        return value

    @field_validator("filter_argument")
    @classmethod
    def validate_filter_argument(cls, value: str) -> str:
        if "{filter}" not in value:
            raise ValueError("filter_argument must contain the '{filter}' placeholder")
        return value


class ProbeConfig(BaseModel):
    base_url: str = "https://demowebshop.tricentis.com"
    browser: Literal["chrome", "firefox"] = "chrome"
    headless: bool = True
    page_load_strategy: Literal["normal", "eager", "none"] = "eager"
    page_load_timeout_seconds: int = 30
    window_width: int = Field(default=1920, gt=0)
    window_height: int = Field(default=1080, gt=0)
    probe_timeout_ms: int = 5000
    candidate_timeout_ms: int = 3000

    @field_validator("browser", "page_load_strategy", mode="before")
    @classmethod
    def lowercase_names(cls, value):
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_timeouts(self) -> ProbeConfig:
        if self.candidate_timeout_ms >= self.probe_timeout_ms:
            raise ValueError("candidate_timeout_ms must be shorter than probe_timeout_ms")
        return self


class PatchConfig(BaseModel):
    backup_root: str = ".selfheal-backups"
    audit_root: str = "artifacts"
    keep_last: int = Field(default=10, ge=0)
    selector_map_dir: str = "src/main/resources/selectors"
    wait_time_files: list[str] = Field(default_factory=list)


class PipelineConfig(BaseModel):
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    patch: PatchConfig = Field(default_factory=PatchConfig)

    def resolve(self, relative: str) -> Path:
        """Resolves a configured path against the runner's working directory."""

        path = Path(relative)
        if path.is_absolute():
            return path
        return Path(self.runner.working_dir) / path
