"""Infra layer utilities (SQLite storage, session store)."""

from .session_store import SessionStore, SQLiteSessionStore
from .storage import SQLiteManager

__all__ = ["SQLiteManager", "SQLiteSessionStore", "SessionStore"]
