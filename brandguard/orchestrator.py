"""Run orchestrator wiring together reference aggregation, target processing and recording."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

import structlog

from .config import RunConfig
from .engine.aggregator import ReferenceAggregator
from .engine.assembler import ResultAssembler, RunStatistics
from .engine.comparison import ComparisonEngine
from .engine.errors import FetchError, FetchErrorKind, PipelineError
from .engine.fetcher import FetchOptions, FetchResult, Fetcher, is_valid_url
from .engine.processor import TargetOutcome, TargetProcessor
from .engine.worker_pool import WorkerPool
from .infra.session_store import SessionStore
from .models import (
    AnalysisResult,
    AnalysisSession,
    AuditAction,
    Enrichment,
    ReferenceSource,
    TargetPage,
)

RUN_STARTED_MESSAGE = "Started comparison analysis"


@dataclass(slots=True)
class RunRequest:
    """Everything one comparison run needs; records are never mutated."""

    owner_id: str
    project_name: str
    references: Sequence[ReferenceSource]
    targets: Sequence[TargetPage]
    owner_name: str = ""

    @classmethod
    def from_config(cls, config: RunConfig, owner_id: str, owner_name: str = "") -> "RunRequest":
        return cls(
            owner_id=owner_id,
            owner_name=owner_name,
            project_name=config.project_name,
            references=config.reference_sources(),
            targets=config.target_pages(),
        )


@dataclass(slots=True)
class RunReport:
    project_name: str
    results: list[AnalysisResult] = field(default_factory=list)
    session: AnalysisSession | None = None
    error: str | None = None
    enrichments: list[Enrichment] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def statistics(self) -> RunStatistics:
        return RunStatistics.from_results(self.results)


class Orchestrator:
    """Central coordinator for comparison runs."""

    def __init__(
        self,
        store: SessionStore,
        fetcher: Fetcher,
        comparison_engine: ComparisonEngine,
        worker_pool: WorkerPool | None = None,
        fetch_options: FetchOptions | None = None,
        logger: structlog.BoundLogger | None = None,
        logger_factory: Callable[[str], structlog.BoundLogger] | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.comparison_engine = comparison_engine
        self.worker_pool = worker_pool or WorkerPool()
        self.fetch_options = fetch_options
        self.logger = logger or structlog.get_logger("brandguard.orchestrator")
        self.logger_factory = logger_factory

    # ------------------------------------------------------------------
    def run(
        self,
        request: RunRequest,
        credential: str | None,
        on_result: Callable[[TargetOutcome], None] | None = None,
    ) -> RunReport:
        base = (
            self.logger_factory(request.project_name)
            if self.logger_factory is not None
            else self.logger.bind(project=request.project_name)
        )
        log = base.bind(owner=request.owner_id)
        self.store.add_log(
            request.owner_id, request.owner_name, AuditAction.ANALYSIS_RUN, RUN_STARTED_MESSAGE
        )
        log.info(
            "run_started",
            references=len(request.references),
            targets=len(request.targets),
            workers=self.worker_pool.max_workers,
        )

        aggregator = ReferenceAggregator(self.fetcher, self.fetch_options, logger=log)
        try:
            reference = aggregator.aggregate(request.references, credential)
        except PipelineError as exc:
            return self._failed(request, log, exc, exc.enrichments)
        except Exception as exc:  # noqa: BLE001
            return self._failed(request, log, exc)

        processor = TargetProcessor(self.fetcher, self.fetch_options, logger=log)

        def _process(target: TargetPage) -> TargetOutcome:
            return processor.process(
                target, reference, self.comparison_engine.compare, credential
            )

        def _completed(_index: int, outcome: TargetOutcome) -> None:
            if on_result is not None:
                on_result(outcome)

        enrichments = list(reference.enrichments)
        try:
            outcomes = self.worker_pool.map_ordered(_process, list(request.targets), _completed)
            results = [outcome.result for outcome in outcomes if outcome.result is not None]
            enrichments.extend(outcome.enrichment for outcome in outcomes if outcome.enrichment)
            session = ResultAssembler(self.store, logger=log).assemble(
                results,
                request.project_name,
                reference.primary.url,
                len(request.references),
                request.owner_id,
                request.owner_name,
            )
        except Exception as exc:  # noqa: BLE001
            return self._failed(request, log, exc, enrichments)

        report = RunReport(
            project_name=request.project_name,
            results=results,
            session=session,
            enrichments=enrichments,
        )
        stats = report.statistics
        log.info(
            "run_completed",
            results=stats.total,
            skipped=len(outcomes) - len(results),
            compliant=stats.compliant_count,
            errors=stats.error_count,
            average_score=stats.average_score,
        )
        return report

    def _failed(
        self,
        request: RunRequest,
        log: structlog.BoundLogger,
        exc: Exception,
        enrichments: Sequence[Enrichment] = (),
    ) -> RunReport:
        message = str(exc) or type(exc).__name__
        log.error(
            "run_failed",
            error_type=type(exc).__name__,
            error=message,
            exc_info=not isinstance(exc, PipelineError),
        )
        self.store.add_log(
            request.owner_id,
            request.owner_name,
            AuditAction.ANALYSIS_RUN,
            f"Analysis failed: {message}",
        )
        return RunReport(
            project_name=request.project_name, error=message, enrichments=list(enrichments)
        )

    def scrape(
        self, url: str, credential: str | None, owner_id: str, owner_name: str = ""
    ) -> FetchResult:
        """Fetch a single page for preview and record the action in the audit log."""

        if not credential or not credential.strip():
            raise FetchError(FetchErrorKind.MISSING_CREDENTIAL, url=url)
        if not is_valid_url(url):
            raise FetchError(FetchErrorKind.INVALID_URL, f"Invalid URL format: {url}", url=url)
        self.store.add_log(owner_id, owner_name, AuditAction.SCRAPE_URL, f"Manually scraped: {url}")
        result = self.fetcher.fetch(url, credential, self.fetch_options)
        self.logger.info("manual_scrape", url=url, attempts=result.attempts)
        return result

    def clear_history(self, owner_id: str, owner_name: str = "") -> int:
        removed = self.store.clear_sessions(owner_id)
        self.store.add_log(
            owner_id, owner_name, AuditAction.VIEW_HISTORY, "Cleared all analysis history"
        )
        self.logger.info("history_cleared", owner=owner_id, removed=removed)
        return removed

    def close(self) -> None:
        self.worker_pool.shutdown()
        self.fetcher.close()
        close_engine = getattr(self.comparison_engine, "close", None)
        if close_engine is not None:
            close_engine()


__all__ = ["Orchestrator", "RUN_STARTED_MESSAGE", "RunReport", "RunRequest"]
