"""Terminal progress rendering for comparison runs."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.status import Status
from rich.text import Text

from ..engine.processor import TargetOutcome
from ..models import AnalysisStatus

_URL_WIDTH = 60


@dataclass
class ProgressState:
    total: int
    compliant: int = 0
    non_compliant: int = 0
    failed: int = 0
    skipped: int = 0
    current_url: str | None = None

    @property
    def completed(self) -> int:
        return self.compliant + self.non_compliant + self.failed + self.skipped

    def record(self, outcome: TargetOutcome) -> None:
        if outcome.result is None:
            self.skipped += 1
        elif outcome.result.status is AnalysisStatus.COMPLIANT:
            self.compliant += 1
        elif outcome.result.status is AnalysisStatus.NON_COMPLIANT:
            self.non_compliant += 1
        else:
            self.failed += 1

    def counts(self) -> dict[str, int]:
        return {
            "compliant": self.compliant,
            "non_compliant": self.non_compliant,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class TallyColumn(ProgressColumn):
    """Per-outcome counters stored in the task's ``tally`` field."""

    _STYLES = (
        ("compliant", "✓", "green"),
        ("non_compliant", "!", "yellow"),
        ("failed", "✗", "red"),
        ("skipped", "↷", "dim"),
    )

    def render(self, task: Task) -> Text:
        tally = task.fields.get("tally") or {}
        text = Text()
        for key, glyph, style in self._STYLES:
            text.append(f"{glyph}{tally.get(key, 0):>3} ", style=style)
        return text


def _shorten(url: str | None) -> str:
    url = url or ""
    return url if len(url) <= _URL_WIDTH else url[: _URL_WIDTH - 3] + "..."


def _build_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[bold blue]{task.description:<18}"),
        BarColumn(bar_width=None, complete_style="green", finished_style="green"),
        TaskProgressColumn(show_speed=False),
        TimeElapsedColumn(),
        TallyColumn(),
        TextColumn("[dim]{task.fields[current_url]}"),
        console=console,
        transient=True,
        refresh_per_second=12,
        expand=True,
    )


class ProgressReporter:
    """Show per-target progress of a run and keep outcome counters."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self._label = "Comparing"
        self.state: ProgressState | None = None

    def set_label(self, label: str) -> None:
        self._label = label
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, description=label)

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        console = self._console or Console()
        if not console.is_terminal:
            self.enabled = False
            return
        progress = _build_progress(console)
        try:
            progress.start()
        except LiveError:
            # another live display owns the console
            self.enabled = False
            return
        self._progress = progress
        self._task_id = progress.add_task(
            self._label, total=total, tally=self.state.counts(), current_url="waiting…"
        )

    def advance(self, outcome: TargetOutcome, current_url: str | None = None) -> None:
        if self.state is None:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            self.state.record(outcome)
            if current_url:
                self.state.current_url = current_url
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    advance=1,
                    tally=self.state.counts(),
                    current_url=_shorten(self.state.current_url),
                )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if self.state is None:
            return ProgressState(total=0).counts()
        return self.state.counts()


class ProgressActivity:
    """Spinner shown while a single fetch is in flight."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        self._status: Status | None = None

    def start(self, message: str) -> None:
        if self.enabled and self._status is None:
            self._status = self.console.status(message)
            self._status.start()

    def close(self) -> None:
        if self._status is not None:
            self._status.stop()
        self._status = None


__all__ = ["ProgressActivity", "ProgressReporter", "ProgressState", "TallyColumn"]
