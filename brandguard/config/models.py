"""Pydantic models used across the BrandGuard configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models import ReferenceSource, TargetPage

DEFAULT_PROJECT_NAME = "Untitled Project"


class FetchServiceConfig(BaseModel):
    """Content fetch service endpoint and retry policy."""

    endpoint: str = "https://api.firecrawl.dev/v1/scrape"
    wait_for_ms: int = 2000
    timeout_ms: int = 60000
    max_retries: int = 2
    initial_backoff_ms: int = 1000
    credential_env: str = "BRANDGUARD_FETCH_KEY"

    @model_validator(mode="after")
    def _validate_bounds(self) -> "FetchServiceConfig":
        if self.wait_for_ms < 0:
            raise ValueError("wait_for_ms must be >= 0")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_backoff_ms < 0:
            raise ValueError("initial_backoff_ms must be >= 0")
        return self


class ComparisonConfig(BaseModel):
    """Gemini comparison engine settings."""

    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env: str = "GEMINI_API_KEY"
    timeout: float = 120.0
    attach_screenshots: bool = True


class GlobalConfig(BaseModel):
    """Global controls shared across runs."""

    fetch: FetchServiceConfig = Field(default_factory=FetchServiceConfig)
    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    max_workers: int = 4
    enable_progress_bar: bool = True
    store_path: Path = Field(default=Path("data/brandguard.db"))
    outputs_dir: Path = Field(default=Path("data/outputs"))

    @field_validator("store_path", "outputs_dir", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("max_workers")
    @classmethod
    def _validate_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_workers must be >= 1")
        return value

    def resolved_store_path(self, base_dir: Path) -> Path:
        if not self.store_path.is_absolute():
            return (base_dir / self.store_path).resolve()
        return self.store_path

    def resolved_outputs_dir(self, base_dir: Path) -> Path:
        if not self.outputs_dir.is_absolute():
            return (base_dir / self.outputs_dir).resolve()
        return self.outputs_dir


class ReferenceInput(BaseModel):
    """One reference source as declared in a run file."""

    name: str = ""
    url: str = ""
    content: str = ""
    screenshot: str | None = None


class TargetInput(BaseModel):
    id: str | None = None
    url: str = ""
    content: str = ""
    screenshot: str | None = None


class RunConfig(BaseModel):
    """A comparison run: reference sources in priority order plus targets."""

    project_name: str = DEFAULT_PROJECT_NAME
    references: list[ReferenceInput] = Field(default_factory=list)
    targets: list[TargetInput] = Field(default_factory=list)

    @field_validator("project_name", mode="before")
    @classmethod
    def _default_project_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        return text or DEFAULT_PROJECT_NAME

    @model_validator(mode="after")
    def _validate_entries(self) -> "RunConfig":
        if not self.references:
            raise ValueError("At least one reference source is required")
        seen: set[str] = set()
        for index, target in enumerate(self.targets, start=1):
            if not target.id:
                target.id = str(index)
            if target.id in seen:
                raise ValueError(f"Duplicate target id: {target.id}")
            seen.add(target.id)
        return self

    @property
    def reference_url(self) -> str:
        return self.references[0].url.strip()

    def reference_sources(self) -> list[ReferenceSource]:
        return [
            ReferenceSource(
                id=f"ref-{position}",
                name=item.name or f"Reference {position + 1}",
                url=item.url.strip(),
                content=item.content,
                screenshot=item.screenshot,
                priority=position,
            )
            for position, item in enumerate(self.references)
        ]

    def target_pages(self) -> list[TargetPage]:
        return [
            TargetPage(
                id=str(item.id),
                url=item.url.strip(),
                content=item.content,
                screenshot=item.screenshot,
            )
            for item in self.targets
        ]


__all__ = [
    "ComparisonConfig",
    "DEFAULT_PROJECT_NAME",
    "FetchServiceConfig",
    "GlobalConfig",
    "ReferenceInput",
    "RunConfig",
    "TargetInput",
]
