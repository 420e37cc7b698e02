"""Session store: analysis history, fetch credentials and the audit log."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Protocol, Sequence

from ..models import AnalysisResult, AnalysisSession, AuditAction, AuditEntry
from .storage import SQLiteManager


class SessionStore(Protocol):
    def save_session(
        self,
        owner_id: str,
        project_name: str,
        reference_url: str,
        results: Sequence[AnalysisResult],
    ) -> AnalysisSession:
        ...

    def list_sessions(self, owner_id: str) -> list[AnalysisSession]:
        ...

    def get_session(self, session_id: str) -> AnalysisSession | None:
        ...

    def delete_session(self, session_id: str) -> bool:
        ...

    def clear_sessions(self, owner_id: str) -> int:
        ...

    def save_credential(self, owner_id: str, credential: str) -> None:
        ...

    def get_credential(self, owner_id: str) -> str | None:
        ...

    def add_log(self, owner_id: str, actor_name: str, action: AuditAction, details: str) -> AuditEntry:
        ...

    def list_logs(self, owner_id: str | None = None, limit: int | None = None) -> list[AuditEntry]:
        ...


def _timestamp() -> str:
    # Microsecond precision keeps recency ordering stable for rapid writes.
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class SQLiteSessionStore:
    """``SessionStore`` backed by a single SQLite database file."""

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    # ------------------------------------------------------------------
    # Analysis history
    # ------------------------------------------------------------------
    def save_session(
        self,
        owner_id: str,
        project_name: str,
        reference_url: str,
        results: Sequence[AnalysisResult],
    ) -> AnalysisSession:
        session = AnalysisSession(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            project_name=project_name,
            reference_url=reference_url,
            timestamp=_timestamp(),
            results=list(results),
        )
        payload = json.dumps([result.to_dict() for result in session.results], ensure_ascii=False)
        with self._lock:
            self._conn.execute(
                "INSERT INTO analysis_history(id, owner_id, project_name, reference_url, results, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    owner_id,
                    project_name,
                    reference_url,
                    payload,
                    session.timestamp,
                ),
            )
            self._conn.commit()
        return session

    def list_sessions(self, owner_id: str) -> list[AnalysisSession]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM analysis_history WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
                (owner_id,),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def get_session(self, session_id: str) -> AnalysisSession | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM analysis_history WHERE id = ?", (session_id,)
            ).fetchone()
        return self._row_to_session(row) if row is not None else None

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            cur = self._conn.execute("DELETE FROM analysis_history WHERE id = ?", (session_id,))
            self._conn.commit()
        return cur.rowcount > 0

    def clear_sessions(self, owner_id: str) -> int:
        with self._lock:
            cur = self._conn.execute("DELETE FROM analysis_history WHERE owner_id = ?", (owner_id,))
            self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    def save_credential(self, owner_id: str, credential: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO credentials(owner_id, fetch_key, updated_at) VALUES (?, ?, ?)",
                (owner_id, credential, _timestamp()),
            )
            self._conn.commit()

    def get_credential(self, owner_id: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT fetch_key FROM credentials WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        return row["fetch_key"] if row is not None and row["fetch_key"] else None

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------
    def add_log(self, owner_id: str, actor_name: str, action: AuditAction, details: str) -> AuditEntry:
        entry = AuditEntry(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            actor_name=actor_name,
            action=AuditAction(action),
            details=details,
            timestamp=_timestamp(),
        )
        with self._lock:
            self._conn.execute(
                "INSERT INTO audit_logs(id, owner_id, actor_name, action, details, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    entry.id,
                    entry.owner_id,
                    entry.actor_name,
                    entry.action.value,
                    entry.details,
                    entry.timestamp,
                ),
            )
            self._conn.commit()
        return entry

    def list_logs(self, owner_id: str | None = None, limit: int | None = None) -> list[AuditEntry]:
        query = "SELECT * FROM audit_logs"
        params: list[object] = []
        if owner_id is not None:
            query += " WHERE owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [
            AuditEntry(
                id=row["id"],
                owner_id=row["owner_id"],
                actor_name=row["actor_name"] or "",
                action=AuditAction(row["action"]),
                details=row["details"] or "",
                timestamp=row["created_at"],
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_session(row) -> AnalysisSession:
        results = [AnalysisResult.from_dict(item) for item in json.loads(row["results"])]
        return AnalysisSession(
            id=row["id"],
            owner_id=row["owner_id"],
            project_name=row["project_name"],
            reference_url=row["reference_url"] or "",
            timestamp=row["created_at"],
            results=results,
        )


__all__ = ["SQLiteSessionStore", "SessionStore"]
