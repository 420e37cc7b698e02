from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from brandguard.engine.assembler import (
    ResultAssembler,
    RunStatistics,
    SortOrder,
    StatusFilter,
    filter_results,
    sort_results,
)
from brandguard.models import AnalysisResult, AnalysisStatus, AuditAction, Discrepancy, Severity


def _result(result_id: str, status: AnalysisStatus, score: float, timestamp: str, *severities: Severity) -> AnalysisResult:
    return AnalysisResult(
        id=result_id,
        url=f"https://shop.test/{result_id}",
        timestamp=timestamp,
        status=status,
        compliance_score=score,
        discrepancies=tuple(
            Discrepancy(
                id=f"{result_id}-d-{index}",
                field="price",
                reference_value="$10",
                found_value="$12",
                severity=severity,
                description="price differs",
                suggestion="fix price",
            )
            for index, severity in enumerate(severities)
        ),
    )


@pytest.fixture
def results() -> list[AnalysisResult]:
    return [
        _result("1", AnalysisStatus.COMPLIANT, 95, "2026-01-01T10:00:00+00:00"),
        _result(
            "2",
            AnalysisStatus.NON_COMPLIANT,
            60,
            "2026-01-03T10:00:00+00:00",
            Severity.CRITICAL,
            Severity.MINOR,
        ),
        _result("3", AnalysisStatus.ERROR, 0, "2026-01-02T10:00:00+00:00"),
    ]


def test_statistics_from_results(results) -> None:
    stats = RunStatistics.from_results(results)
    assert stats.total == 3
    assert stats.average_score == 52
    assert stats.critical_issues == 1
    assert stats.minor_issues == 1
    assert stats.major_issues == 0
    assert stats.compliant_count == 1
    assert stats.non_compliant_count == 1
    assert stats.error_count == 1
    assert stats.compliance_rate == pytest.approx(1 / 3)


def test_statistics_for_empty_run() -> None:
    stats = RunStatistics.from_results([])
    assert stats.total == 0
    assert stats.average_score == 0
    assert stats.compliance_rate == 0.0


@pytest.mark.parametrize(("scores", "expected"), [((92, 93), 93), ((4, 5), 5), ((90, 91, 91), 91)])
def test_average_score_rounds_half_up(scores, expected) -> None:
    results = [
        _result(str(index), AnalysisStatus.COMPLIANT, score, "2026-01-01T10:00:00+00:00")
        for index, score in enumerate(scores)
    ]
    assert RunStatistics.from_results(results).average_score == expected


def test_assemble_records_session_and_audit(results) -> None:
    store = MagicMock()
    store.save_session.return_value = MagicMock(id="sess-1")
    session = ResultAssembler(store).assemble(
        results, "Launch", "https://brand.test", 2, "owner-1", "Dana"
    )

    assert session is store.save_session.return_value
    store.save_session.assert_called_once_with("owner-1", "Launch", "https://brand.test", results)
    store.add_log.assert_called_once_with(
        "owner-1",
        "Dana",
        AuditAction.ANALYSIS_RUN,
        "Analysis complete. Processed 3 pages against 2 reference sources.",
    )


def test_assemble_skips_empty_runs() -> None:
    store = MagicMock()
    assert ResultAssembler(store).assemble([], "Launch", "", 1, "owner-1") is None
    store.save_session.assert_not_called()
    store.add_log.assert_not_called()


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (StatusFilter.ALL, ["1", "2", "3"]),
        ("compliant", ["1"]),
        ("NON_COMPLIANT", ["2"]),
        (StatusFilter.ERROR, ["3"]),
    ],
)
def test_filter_results(results, status, expected) -> None:
    assert [item.id for item in filter_results(results, status)] == expected


@pytest.mark.parametrize(
    ("order", "expected"),
    [
        (SortOrder.DATE_NEW, ["2", "3", "1"]),
        ("date_old", ["1", "3", "2"]),
        (SortOrder.SCORE_HIGH, ["1", "2", "3"]),
        ("SCORE_LOW", ["3", "2", "1"]),
    ],
)
def test_sort_results(results, order, expected) -> None:
    assert [item.id for item in sort_results(results, order)] == expected
