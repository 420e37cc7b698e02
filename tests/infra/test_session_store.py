from __future__ import annotations

from brandguard.infra import SQLiteManager, SQLiteSessionStore
from brandguard.models import AnalysisResult, AnalysisStatus, AuditAction


def _result(result_id: str, score: float = 90) -> AnalysisResult:
    return AnalysisResult(
        id=result_id,
        url=f"https://shop.test/{result_id}",
        timestamp="2026-01-01T00:00:00+00:00",
        status=AnalysisStatus.COMPLIANT,
        compliance_score=score,
        raw_text="text",
    )


def test_sqlite_manager_initialises_schema(tmp_path) -> None:
    manager = SQLiteManager()
    conn = manager.connect(tmp_path / "store.db")
    tables = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"analysis_history", "credentials", "audit_logs"}.issubset(tables)
    manager.close_all()


def test_sqlite_manager_reset(tmp_path) -> None:
    manager = SQLiteManager()
    path = tmp_path / "store.db"
    store = SQLiteSessionStore(manager, path)
    store.save_session("owner", "Launch", "", [_result("1")])
    manager.reset(path)
    assert not path.exists()
    assert SQLiteSessionStore(manager, path).list_sessions("owner") == []
    manager.close_all()


def test_sessions_round_trip_newest_first(session_store) -> None:
    first = session_store.save_session("owner", "Launch", "https://brand.test", [_result("1")])
    second = session_store.save_session("owner", "Relaunch", "https://brand.test", [_result("1"), _result("2", 40)])
    session_store.save_session("someone-else", "Other", "", [_result("9")])

    sessions = session_store.list_sessions("owner")
    assert [item.id for item in sessions] == [second.id, first.id]
    loaded = session_store.get_session(second.id)
    assert loaded.project_name == "Relaunch"
    assert loaded.results == second.results
    assert session_store.get_session("missing") is None


def test_delete_and_clear_sessions(session_store) -> None:
    first = session_store.save_session("owner", "A", "", [_result("1")])
    session_store.save_session("owner", "B", "", [_result("1")])
    assert session_store.delete_session(first.id) is True
    assert session_store.delete_session(first.id) is False
    assert session_store.clear_sessions("owner") == 1
    assert session_store.list_sessions("owner") == []


def test_credentials_are_upserted(session_store) -> None:
    assert session_store.get_credential("owner") is None
    session_store.save_credential("owner", "fc-1")
    session_store.save_credential("owner", "fc-2")
    assert session_store.get_credential("owner") == "fc-2"


def test_audit_log_filters_and_limits(session_store) -> None:
    session_store.add_log("owner", "Dana", AuditAction.ANALYSIS_RUN, "Started comparison analysis")
    session_store.add_log("owner", "Dana", AuditAction.SCRAPE_URL, "Manually scraped: https://shop.test")
    session_store.add_log("other", "Lee", AuditAction.VIEW_HISTORY, "Cleared all analysis history")

    owner_logs = session_store.list_logs("owner")
    assert [entry.action for entry in owner_logs] == [AuditAction.SCRAPE_URL, AuditAction.ANALYSIS_RUN]
    assert owner_logs[0].actor_name == "Dana"
    assert len(session_store.list_logs()) == 3
    assert len(session_store.list_logs(limit=1)) == 1
