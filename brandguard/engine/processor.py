"""Per-target fetch-or-reuse and comparison."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

import structlog

from ..models import (
    MANUAL_INPUT_LABEL,
    MANUAL_INPUT_URL,
    AnalysisResult,
    AnalysisStatus,
    Discrepancy,
    Enrichment,
    EnrichmentKind,
    Severity,
    TargetPage,
    utc_now,
)
from .aggregator import AggregatedReference
from .comparison import ComparisonVerdict, parse_verdict
from .errors import ComparisonError, FetchError
from .fetcher import FetchOptions, Fetcher, is_valid_url

INVALID_URL_REASON = "Invalid URL Format provided for scraping"
SCRAPE_FAILED_REASON = "Scraping Failed"
COMPARISON_FAILED_REASON = "Comparison Failed"
PROCESSING_FAILED_REASON = "Processing Failed"

CompareFn = Callable[
    [str, str, str, "str | None", "str | None"],
    "ComparisonVerdict | Mapping[str, Any]",
]


@dataclass(slots=True)
class TargetOutcome:
    """What processing one target produced; ``result`` is None when skipped."""

    target_id: str
    result: AnalysisResult | None
    enrichment: Enrichment | None = None

    @property
    def skipped(self) -> bool:
        return self.result is None


def normalise_severity(value: str) -> Severity:
    try:
        return Severity(str(value).strip().upper())
    except ValueError as exc:
        raise ComparisonError(f"Unrecognised discrepancy severity: {value!r}") from exc


def build_result(target: TargetPage, content: str, screenshot: str | None, verdict: ComparisonVerdict) -> AnalysisResult:
    discrepancies = tuple(
        Discrepancy(
            id=f"{target.id}-d-{index}",
            field=item.field,
            reference_value=item.reference_value,
            found_value=item.found_value,
            severity=normalise_severity(item.severity),
            description=item.description,
            suggestion=item.suggestion,
        )
        for index, item in enumerate(verdict.discrepancies)
    )
    status = AnalysisStatus.NON_COMPLIANT if discrepancies else AnalysisStatus.COMPLIANT
    return AnalysisResult(
        id=target.id,
        url=target.url or MANUAL_INPUT_URL,
        timestamp=utc_now(),
        status=status,
        compliance_score=verdict.compliance_score,
        discrepancies=discrepancies,
        raw_text=content,
        screenshot=screenshot,
    )


class TargetProcessor:
    """Turn one target page into an ``AnalysisResult``; never raises."""

    def __init__(
        self,
        fetcher: Fetcher,
        options: FetchOptions | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.options = options
        self.logger = logger or structlog.get_logger("brandguard.processor")

    def process(
        self,
        target: TargetPage,
        reference: AggregatedReference,
        compare: CompareFn,
        credential: str | None,
    ) -> TargetOutcome:
        try:
            return self._process(target, reference, compare, credential)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("target_processing_error", target=target.id, url=target.url, error=str(exc))
            return TargetOutcome(
                target.id, AnalysisResult.error(target.id, target.url, PROCESSING_FAILED_REASON)
            )

    def _process(
        self,
        target: TargetPage,
        reference: AggregatedReference,
        compare: CompareFn,
        credential: str | None,
    ) -> TargetOutcome:
        content = target.content
        screenshot = target.screenshot
        enrichment: Enrichment | None = None

        if not content.strip() and target.url.strip():
            if not is_valid_url(target.url):
                self.logger.warning("target_invalid_url", target=target.id, url=target.url)
                return TargetOutcome(
                    target.id, AnalysisResult.error(target.id, target.url, INVALID_URL_REASON)
                )
            try:
                fetched = self.fetcher.fetch(target.url, credential, self.options)
            except FetchError as exc:
                self.logger.error(
                    "target_fetch_failed",
                    target=target.id,
                    url=target.url,
                    kind=exc.kind.value,
                    error=exc.detail,
                )
                return TargetOutcome(
                    target.id, AnalysisResult.error(target.id, target.url, SCRAPE_FAILED_REASON)
                )
            content = fetched.content
            screenshot = fetched.screenshot
            enrichment = Enrichment(
                kind=EnrichmentKind.TARGET,
                item_id=target.id,
                content=content,
                screenshot=screenshot,
            )

        if not content.strip():
            self.logger.info("target_skipped", target=target.id)
            return TargetOutcome(target.id, None, enrichment)

        label = target.url or MANUAL_INPUT_LABEL
        try:
            verdict = parse_verdict(
                compare(
                    reference.combined_text,
                    content,
                    label,
                    reference.primary_screenshot,
                    screenshot,
                )
            )
            result = build_result(target, content, screenshot, verdict)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "target_comparison_failed",
                target=target.id,
                label=label,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return TargetOutcome(
                target.id,
                AnalysisResult.error(target.id, target.url, COMPARISON_FAILED_REASON),
                enrichment,
            )

        self._flag_score_mismatch(result)
        self.logger.info(
            "target_compared",
            target=target.id,
            status=result.status.value,
            score=result.compliance_score,
            discrepancies=len(result.discrepancies),
        )
        return TargetOutcome(target.id, result, enrichment)

    def _flag_score_mismatch(self, result: AnalysisResult) -> None:
        # The engine is the only scoring authority; inconsistencies are reported, never corrected.
        empty = not result.discrepancies
        if (empty and result.compliance_score < 100) or (not empty and result.compliance_score >= 100):
            self.logger.info(
                "score_status_mismatch",
                target=result.id,
                status=result.status.value,
                score=result.compliance_score,
            )


__all__ = [
    "COMPARISON_FAILED_REASON",
    "CompareFn",
    "INVALID_URL_REASON",
    "PROCESSING_FAILED_REASON",
    "SCRAPE_FAILED_REASON",
    "TargetOutcome",
    "TargetProcessor",
    "build_result",
    "normalise_severity",
]
