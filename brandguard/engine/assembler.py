"""Session recording, run statistics and result views."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import structlog

from ..infra.session_store import SessionStore
from ..models import AnalysisResult, AnalysisSession, AnalysisStatus, AuditAction, Severity


class StatusFilter(str, Enum):
    ALL = "ALL"
    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    ERROR = "ERROR"


class SortOrder(str, Enum):
    DATE_NEW = "DATE_NEW"
    DATE_OLD = "DATE_OLD"
    SCORE_HIGH = "SCORE_HIGH"
    SCORE_LOW = "SCORE_LOW"


@dataclass(frozen=True, slots=True)
class RunStatistics:
    total: int = 0
    average_score: int = 0
    critical_issues: int = 0
    major_issues: int = 0
    minor_issues: int = 0
    compliant_count: int = 0
    non_compliant_count: int = 0
    error_count: int = 0
    compliance_rate: float = 0.0

    @classmethod
    def from_results(cls, results: Sequence[AnalysisResult]) -> "RunStatistics":
        total = len(results)
        if total == 0:
            return cls()
        by_status = {status: 0 for status in AnalysisStatus}
        for result in results:
            by_status[result.status] += 1
        return cls(
            total=total,
            average_score=math.floor(sum(result.compliance_score for result in results) / total + 0.5),
            critical_issues=sum(result.count_severity(Severity.CRITICAL) for result in results),
            major_issues=sum(result.count_severity(Severity.MAJOR) for result in results),
            minor_issues=sum(result.count_severity(Severity.MINOR) for result in results),
            compliant_count=by_status[AnalysisStatus.COMPLIANT],
            non_compliant_count=by_status[AnalysisStatus.NON_COMPLIANT],
            error_count=by_status[AnalysisStatus.ERROR],
            compliance_rate=by_status[AnalysisStatus.COMPLIANT] / total,
        )


def completion_message(page_count: int, reference_count: int) -> str:
    return (
        f"Analysis complete. Processed {page_count} pages against "
        f"{reference_count} reference sources."
    )


class ResultAssembler:
    """Persist a finished run as one session plus one audit entry."""

    def __init__(self, store: SessionStore, logger: structlog.BoundLogger | None = None) -> None:
        self.store = store
        self.logger = logger or structlog.get_logger("brandguard.assembler")

    def assemble(
        self,
        results: Sequence[AnalysisResult],
        project_name: str,
        reference_url: str,
        reference_count: int,
        owner_id: str,
        owner_name: str = "",
    ) -> AnalysisSession | None:
        if not results:
            self.logger.info("session_not_recorded", project=project_name, reason="no_results")
            return None
        session = self.store.save_session(owner_id, project_name, reference_url, list(results))
        self.store.add_log(
            owner_id,
            owner_name,
            AuditAction.ANALYSIS_RUN,
            completion_message(len(results), reference_count),
        )
        self.logger.info(
            "session_recorded",
            session=session.id,
            project=project_name,
            results=len(results),
        )
        return session


def filter_results(
    results: Sequence[AnalysisResult], status: StatusFilter | str = StatusFilter.ALL
) -> list[AnalysisResult]:
    wanted = status if isinstance(status, StatusFilter) else StatusFilter(status.upper())
    if wanted is StatusFilter.ALL:
        return list(results)
    return [result for result in results if result.status.value == wanted.value]


def sort_results(
    results: Sequence[AnalysisResult], order: SortOrder | str = SortOrder.DATE_NEW
) -> list[AnalysisResult]:
    order = order if isinstance(order, SortOrder) else SortOrder(order.upper())
    if order is SortOrder.DATE_NEW:
        return sorted(results, key=lambda item: item.timestamp, reverse=True)
    if order is SortOrder.DATE_OLD:
        return sorted(results, key=lambda item: item.timestamp)
    if order is SortOrder.SCORE_HIGH:
        return sorted(results, key=lambda item: item.compliance_score, reverse=True)
    return sorted(results, key=lambda item: item.compliance_score)


__all__ = [
    "ResultAssembler",
    "RunStatistics",
    "SortOrder",
    "StatusFilter",
    "completion_message",
    "filter_results",
    "sort_results",
]
