"""Typer CLI entrypoint for BrandGuard."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig, ReferenceInput, RunConfig, TargetInput
from .engine import (
    BrandGuardError,
    FetchError,
    Fetcher,
    GeminiComparisonEngine,
    RunStatistics,
    SortOrder,
    StatusFilter,
    WorkerPool,
    filter_results,
    sort_results,
)
from .engine.exporter import ReportExporter, format_score
from .infra import SQLiteManager, SQLiteSessionStore
from .logging_conf import (
    app_log_path,
    available_project_logs,
    configure_logging,
    project_log_path,
    project_logger,
    tail_log,
)
from .models import AnalysisResult, AnalysisStatus, apply_enrichments
from .orchestrator import Orchestrator, RunReport, RunRequest
from .ui import ProgressActivity, ProgressReporter

DEFAULT_OWNER = "local"

app = typer.Typer(help="BrandGuard brand compliance checker", no_args_is_help=True)
history_app = typer.Typer(name="history", help="Analysis history commands", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log file commands", no_args_is_help=True)
key_app = typer.Typer(name="key", help="Fetch service credential commands", no_args_is_help=True)

console = Console()

_STATUS_STYLES = {
    AnalysisStatus.COMPLIANT: "green",
    AnalysisStatus.NON_COMPLIANT: "yellow",
    AnalysisStatus.ERROR: "red",
}


@dataclass
class AppState:
    repository: ConfigRepository
    global_config: GlobalConfig
    storage: SQLiteManager
    store: SQLiteSessionStore
    orchestrator: Orchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    storage = SQLiteManager()
    store = SQLiteSessionStore(storage, repository.store_path())
    orchestrator = Orchestrator(
        store=store,
        fetcher=Fetcher(global_config.fetch),
        comparison_engine=GeminiComparisonEngine(global_config.comparison),
        worker_pool=WorkerPool(global_config.max_workers),
        logger_factory=project_logger,
    )
    return AppState(
        repository=repository,
        global_config=global_config,
        storage=storage,
        store=store,
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _default_owner() -> str:
    return os.environ.get("BRANDGUARD_OWNER") or DEFAULT_OWNER


def _resolve_credential(state: AppState, owner: str) -> str | None:
    stored = state.store.get_credential(owner)
    if stored:
        return stored
    return os.environ.get(state.global_config.fetch.credential_env) or None


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"


def _render_results_table(title: str, results: Sequence[AnalysisResult]) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Issues", justify="right")
    table.add_column("Note", style="dim", overflow="fold")
    for result in results:
        style = _STATUS_STYLES[result.status]
        note = result.raw_text if result.status is AnalysisStatus.ERROR else ""
        table.add_row(
            result.id,
            result.url,
            f"[{style}]{result.status.value}[/{style}]",
            format_score(result.compliance_score),
            str(len(result.discrepancies)),
            note or "",
        )
    return table


def _render_statistics(stats: RunStatistics) -> Table:
    table = Table(title="Summary", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Pages analyzed", str(stats.total))
    table.add_row("Average score", str(stats.average_score))
    table.add_row("Compliance rate", f"{stats.compliance_rate:.0%}")
    table.add_row("Compliant", str(stats.compliant_count))
    table.add_row("Non-compliant", str(stats.non_compliant_count))
    table.add_row("Errors", str(stats.error_count))
    table.add_row("Critical issues", str(stats.critical_issues))
    table.add_row("Major issues", str(stats.major_issues))
    table.add_row("Minor issues", str(stats.minor_issues))
    return table


def _render_discrepancies(result: AnalysisResult) -> Table:
    table = Table(title=f"{result.url} · {len(result.discrepancies)} issues", box=box.SIMPLE_HEAD)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Field", style="cyan")
    table.add_column("Reference", overflow="fold")
    table.add_column("Found", overflow="fold")
    table.add_column("Suggestion", style="dim", overflow="fold")
    for item in result.discrepancies:
        table.add_row(
            item.severity.value,
            item.field,
            item.reference_value,
            item.found_value,
            item.suggestion,
        )
    return table


def _parse_view_options(status: str, sort: str) -> tuple[StatusFilter, SortOrder]:
    try:
        return StatusFilter(status.upper()), SortOrder(sort.upper())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _export(state: AppState, results: Sequence[AnalysisResult], fmt: str) -> Path:
    output_dir = state.global_config.resolved_outputs_dir(state.repository.locator.project_root)
    with ReportExporter(output_dir, fmt) as exporter:
        exporter.export_many(results)
        exporter.flush()
    return exporter.path


def _write_enriched(
    state: AppState, path: Path, config: RunConfig, request: RunRequest, report: RunReport
) -> None:
    references = apply_enrichments(request.references, report.enrichments)
    targets = apply_enrichments(request.targets, report.enrichments)
    updated = RunConfig(
        project_name=config.project_name,
        references=[
            ReferenceInput(
                name=original.name,
                url=original.url,
                content=source.content,
                screenshot=source.screenshot,
            )
            for original, source in zip(config.references, references)
        ],
        targets=[
            TargetInput(id=page.id, url=page.url, content=page.content, screenshot=page.screenshot)
            for page in targets
        ],
    )
    state.repository.save_run(path, updated)


app.add_typer(history_app, name="history")
app.add_typer(log_app, name="log")
app.add_typer(key_app, name="key")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging")
) -> None:
    ctx.obj = build_state(verbose)
    ctx.call_on_close(ctx.obj.orchestrator.close)


@app.command("run", help="Run a comparison from a YAML/JSON run file.")
def run(
    ctx: typer.Context,
    run_file: Path = typer.Argument(..., help="Run file describing references and targets."),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id for history and audit."),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Concurrent targets."),
    export: Optional[str] = typer.Option(None, "--export", help="Export report: csv or json."),
    status: str = typer.Option("ALL", "--status", help="ALL, COMPLIANT, NON_COMPLIANT or ERROR."),
    sort: str = typer.Option("DATE_NEW", "--sort", help="DATE_NEW, DATE_OLD, SCORE_HIGH or SCORE_LOW."),
    quiet: bool = typer.Option(False, "--quiet", help="Only print the summary line."),
    save_enriched: bool = typer.Option(
        False, "--save-enriched", help="Write fetched content back into the run file."
    ),
) -> None:
    state = _get_state(ctx)
    status_filter, sort_order = _parse_view_options(status, sort)
    if export is not None and export not in ("csv", "json"):
        raise typer.BadParameter("--export must be csv or json")
    owner = owner or _default_owner()

    try:
        config = state.repository.load_run(run_file)
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        console.print(f"Cannot load run file: {exc}", style="red")
        raise typer.Exit(code=1)

    if workers is not None:
        state.orchestrator.worker_pool = WorkerPool(max_workers=workers)
    request = RunRequest.from_config(config, owner_id=owner, owner_name=owner)
    credential = _resolve_credential(state, owner)

    progress = ProgressReporter(
        enabled=state.global_config.enable_progress_bar and _progress_default_enabled() and not quiet,
        console=console,
    )
    progress.set_label(config.project_name)
    progress.start(len(request.targets))
    try:
        report = state.orchestrator.run(
            request,
            credential,
            on_result=lambda outcome: progress.advance(
                outcome, outcome.result.url if outcome.result else None
            ),
        )
    finally:
        progress.close()

    if save_enriched and report.enrichments:
        _write_enriched(state, run_file, config, request, report)
        console.print(f"Fetched content saved to {run_file}", style="dim")

    if report.failed:
        console.print(f"Analysis failed: {report.error}", style="red")
        raise typer.Exit(code=1)

    stats = report.statistics
    if quiet:
        console.print(
            f"Analysis complete: {stats.total} pages, average score {stats.average_score}, "
            f"{stats.compliant_count} compliant, {stats.critical_issues} critical issues"
        )
    else:
        view = sort_results(filter_results(report.results, status_filter), sort_order)
        console.print(_render_results_table(f"{config.project_name} results", view))
        console.print(_render_statistics(stats))
        if not report.results:
            console.print("No target had content to analyze; nothing was recorded.", style="yellow")

    if export and report.results:
        view = sort_results(filter_results(report.results, status_filter), sort_order)
        path = _export(state, view, export)
        console.print(f"Report written to {path}", style="green")


@app.command("scrape", help="Fetch a single URL and preview its content.")
def scrape(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Page to fetch."),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id for the audit log."),
    preview: int = typer.Option(1500, "--preview", min=0, help="Characters of content to show."),
) -> None:
    state = _get_state(ctx)
    owner = owner or _default_owner()
    activity = ProgressActivity(enabled=_progress_default_enabled(), console=console)
    activity.start(f"Fetching {url} …")
    try:
        result = state.orchestrator.scrape(url, _resolve_credential(state, owner), owner, owner)
    except FetchError as exc:
        console.print(f"Scrape failed: {exc}", style="red")
        raise typer.Exit(code=1)
    finally:
        activity.close()
    console.print(f"Fetched {result.url} in {result.attempts} attempt(s)", style="green")
    if result.screenshot:
        console.print(f"Screenshot: {result.screenshot}", style="dim")
    text = result.content
    if preview and len(text) > preview:
        text = text[:preview] + "\n…"
    console.print(text, markup=False)


@history_app.command("list", help="List saved analysis sessions, newest first.")
def history_list(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id."),
) -> None:
    state = _get_state(ctx)
    sessions = state.store.list_sessions(owner or _default_owner())
    if not sessions:
        console.print("No analysis history.", style="dim")
        return
    table = Table(title=f"Analysis history · {len(sessions)} sessions", box=box.SIMPLE_HEAD)
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Project")
    table.add_column("Reference", overflow="fold")
    table.add_column("Created", style="green")
    table.add_column("Pages", justify="right")
    table.add_column("Avg score", justify="right")
    for session in sessions:
        stats = RunStatistics.from_results(session.results)
        table.add_row(
            session.id,
            session.project_name,
            session.reference_url or "-",
            session.timestamp,
            str(stats.total),
            str(stats.average_score),
        )
    console.print(table)


@history_app.command("show", help="Show the results of one saved session.")
def history_show(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session id."),
    status: str = typer.Option("ALL", "--status", help="ALL, COMPLIANT, NON_COMPLIANT or ERROR."),
    sort: str = typer.Option("DATE_NEW", "--sort", help="DATE_NEW, DATE_OLD, SCORE_HIGH or SCORE_LOW."),
    details: bool = typer.Option(False, "--details", help="List every discrepancy."),
    export: Optional[str] = typer.Option(None, "--export", help="Export report: csv or json."),
) -> None:
    state = _get_state(ctx)
    status_filter, sort_order = _parse_view_options(status, sort)
    session = state.store.get_session(session_id)
    if session is None:
        console.print(f"Session `{session_id}` not found.", style="red")
        raise typer.Exit(code=1)
    view = sort_results(filter_results(session.results, status_filter), sort_order)
    console.print(_render_results_table(f"{session.project_name} · {session.timestamp}", view))
    console.print(_render_statistics(RunStatistics.from_results(session.results)))
    if details:
        for result in view:
            if result.discrepancies:
                console.print(_render_discrepancies(result))
    if export:
        if export not in ("csv", "json"):
            raise typer.BadParameter("--export must be csv or json")
        path = _export(state, view, export)
        console.print(f"Report written to {path}", style="green")


@history_app.command("delete", help="Delete one saved session.")
def history_delete(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session id."),
) -> None:
    state = _get_state(ctx)
    if not state.store.delete_session(session_id):
        console.print(f"Session `{session_id}` not found.", style="red")
        raise typer.Exit(code=1)
    console.print(f"Session `{session_id}` deleted.", style="green")


@history_app.command("clear", help="Delete every saved session for an owner.")
def history_clear(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    owner = owner or _default_owner()
    if not yes and not typer.confirm(f"Delete all analysis history for `{owner}`?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    removed = state.orchestrator.clear_history(owner, owner)
    console.print(f"Removed {removed} sessions.", style="green")


@app.command("audit", help="Show audit log entries, newest first.")
def audit(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(None, "--owner", help="Only entries for this owner."),
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum entries."),
) -> None:
    state = _get_state(ctx)
    entries = state.store.list_logs(owner, limit)
    if not entries:
        console.print("No audit entries.", style="dim")
        return
    table = Table(title=f"Audit log · {len(entries)} entries", box=box.SIMPLE_HEAD)
    table.add_column("Time", style="green", no_wrap=True)
    table.add_column("Owner", style="cyan")
    table.add_column("Action", style="magenta")
    table.add_column("Details", overflow="fold")
    for entry in entries:
        table.add_row(entry.timestamp, entry.actor_name or entry.owner_id, entry.action.value, entry.details)
    console.print(table)


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_project_logs())
    console.print(f"Application log: {app_log_path()}", style="cyan")
    if not logs:
        console.print("No project logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Project log", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    project: Optional[str] = typer.Option(None, "--project", help="Project name; omit for the app log."),
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines."),
) -> None:
    path = project_log_path(project) if project else app_log_path()
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False)


@key_app.command("set", help="Store the fetch service credential for an owner.")
def key_set(
    ctx: typer.Context,
    credential: str = typer.Argument(..., help="Fetch service API key."),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id."),
) -> None:
    state = _get_state(ctx)
    if not credential.strip():
        raise typer.BadParameter("credential must not be empty")
    owner = owner or _default_owner()
    state.store.save_credential(owner, credential.strip())
    console.print(f"Credential saved for `{owner}`.", style="green")


@key_app.command("show", help="Show the masked fetch credential in effect for an owner.")
def key_show(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id."),
) -> None:
    state = _get_state(ctx)
    owner = owner or _default_owner()
    credential = _resolve_credential(state, owner)
    if not credential:
        console.print(
            f"No credential for `{owner}` (set one with `brandguard key set` "
            f"or {state.global_config.fetch.credential_env}).",
            style="yellow",
        )
        raise typer.Exit(code=1)
    console.print(f"{owner}: {_mask(credential)}")


def cli() -> None:
    try:
        app()
    except BrandGuardError as exc:
        console.print(str(exc), style="red")
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover
    cli()
