"""Shared fixtures: configs, stores, and doubles for the fetch service and comparison engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import httpx
import pytest

from brandguard.config import ConfigLocator, ConfigRepository, FetchServiceConfig, GlobalConfig, RunConfig
from brandguard.engine.errors import FetchError
from brandguard.engine.fetcher import FetchResult
from brandguard.infra import SQLiteManager, SQLiteSessionStore


class FakeFetcher:
    """Stand-in for ``Fetcher`` answering from a url -> content/error table."""

    def __init__(self, pages: Mapping[str, str | FetchResult | FetchError] | None = None) -> None:
        self.pages = dict(pages or {})
        self.calls: list[tuple[str, str | None]] = []
        self.closed = False

    def fetch(self, url: str, credential: str | None, options=None) -> FetchResult:
        self.calls.append((url, credential))
        outcome = self.pages.get(url)
        if isinstance(outcome, FetchError):
            raise outcome
        if isinstance(outcome, FetchResult):
            return outcome
        if outcome is None:
            raise AssertionError(f"unexpected fetch of {url}")
        return FetchResult(url=url, content=outcome, screenshot=f"{url}/shot.png")

    def close(self) -> None:
        self.closed = True


class RecordingCompare:
    """Comparison double returning canned verdicts and recording every call."""

    def __init__(
        self,
        verdict: Mapping[str, Any] | Callable[..., Mapping[str, Any]] | Exception | None = None,
    ) -> None:
        self.verdict = verdict if verdict is not None else {"complianceScore": 100, "discrepancies": []}
        self.calls: list[dict[str, Any]] = []

    def __call__(
        self,
        reference_text: str,
        target_text: str,
        target_label: str,
        reference_image: str | None = None,
        target_image: str | None = None,
    ) -> Mapping[str, Any]:
        self.calls.append(
            {
                "reference_text": reference_text,
                "target_text": target_text,
                "target_label": target_label,
                "reference_image": reference_image,
                "target_image": target_image,
            }
        )
        if isinstance(self.verdict, Exception):
            raise self.verdict
        if callable(self.verdict):
            return self.verdict(target_label, target_text)
        return self.verdict

    # ``ComparisonEngine`` protocol
    compare = __call__


def discrepancy(severity: str = "MAJOR", field: str = "price", **overrides: Any) -> dict[str, Any]:
    payload = {
        "field": field,
        "referenceValue": "$10",
        "foundValue": "$12",
        "severity": severity,
        "description": f"{field} differs",
        "suggestion": f"Update {field}",
    }
    payload.update(overrides)
    return payload


def scrape_response(markdown: str | None = "# Page", screenshot: str | None = "https://cdn.test/shot.png") -> dict:
    data: dict[str, Any] = {"metadata": {"title": "Page"}}
    if markdown is not None:
        data["markdown"] = markdown
    if screenshot is not None:
        data["screenshot"] = screenshot
    return {"success": True, "data": data}


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def fetch_config() -> FetchServiceConfig:
    return FetchServiceConfig(endpoint="https://fetch.test/v1/scrape")


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        store_path=tmp_path / "brandguard.db",
        outputs_dir=tmp_path / "outputs",
        max_workers=2,
        enable_progress_bar=False,
    )


@pytest.fixture
def sample_run_config() -> Callable[..., RunConfig]:
    def _builder(**overrides: Any) -> RunConfig:
        base: dict[str, Any] = {
            "project_name": "Spring Launch",
            "references": [
                {"name": "Brand book", "url": "https://brand.test/book", "content": "Price: $10"},
            ],
            "targets": [
                {"url": "https://shop.test/a", "content": "Price: $10"},
                {"url": "https://shop.test/b", "content": "Price: $12"},
            ],
        }
        base.update(overrides)
        return RunConfig.model_validate(base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("BRANDGUARD_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def session_store(tmp_path: Path) -> Iterable[SQLiteSessionStore]:
    manager = SQLiteManager()
    store = SQLiteSessionStore(manager, tmp_path / "brandguard.db")
    yield store
    manager.close_all()


@pytest.fixture
def fake_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def recording_compare() -> Callable[..., RecordingCompare]:
    return RecordingCompare


@pytest.fixture
def make_discrepancy() -> Callable[..., dict[str, Any]]:
    return discrepancy


@pytest.fixture
def make_scrape_response() -> Callable[..., dict]:
    return scrape_response


@pytest.fixture
def make_mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    return mock_client
