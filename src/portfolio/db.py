from __future__ import annotations

import os
import sqlite3
from typing import Any

from .errors import PersistenceError
from .migrations import apply_migrations

_MIGRATED_TARGETS: set[str] = set()


def get_db_url() -> str | None:
    url = os.environ.get("PF_DB_URL", "").strip()
    return url or None


def is_postgres_url(url: str | None) -> bool:
    if not url:
        return False
    return url.startswith("postgres://") or url.startswith("postgresql://")


class DBConn:
    def __init__(self, conn: Any, backend: str, errors: tuple[type[BaseException], ...]) -> None:
        self._conn = conn
        self._errors = errors
        self.backend = backend

    def execute(self, sql: str, params: tuple | list | None = None):
        sql = _normalize_sql(sql, self.backend)
        params = params or ()
        try:
            cursor = self._conn.cursor()
            cursor.execute(sql, params)
        except self._errors as exc:
            self._rollback_quietly()
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc
        return cursor

    def executemany(self, sql: str, seq_of_params):
        sql = _normalize_sql(sql, self.backend)
        try:
            cursor = self._conn.cursor()
            cursor.executemany(sql, seq_of_params)
        except self._errors as exc:
            self._rollback_quietly()
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc
        return cursor

    def commit(self) -> None:
        try:
            self._conn.commit()
        except self._errors as exc:
            raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def _rollback_quietly(self) -> None:
        # Postgres leaves the transaction aborted after a failed statement.
        try:
            self._conn.rollback()
        except self._errors:
            pass

    def __getattr__(self, name: str):
        return getattr(self._conn, name)


def connect_db(path: str) -> DBConn:
    url = get_db_url()
    if url and is_postgres_url(url):
        try:
            import psycopg
        except ImportError as exc:  # pragma: no cover - depends on env
            raise RuntimeError("psycopg is required for PostgreSQL support") from exc
        raw = psycopg.connect(url)
        conn = DBConn(raw, "postgres", (psycopg.Error,))
        if url not in _MIGRATED_TARGETS:
            apply_migrations(conn)
            _MIGRATED_TARGETS.add(url)
        return conn

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    raw = sqlite3.connect(path)
    raw.execute("PRAGMA journal_mode=WAL")
    raw.execute("PRAGMA synchronous=NORMAL")
    raw.execute("PRAGMA busy_timeout=5000")
    conn = DBConn(raw, "sqlite", (sqlite3.Error,))
    target = os.path.abspath(path)
    if target not in _MIGRATED_TARGETS:
        apply_migrations(conn)
        _MIGRATED_TARGETS.add(target)
    return conn


def _normalize_sql(sql: str, backend: str) -> str:
    if backend != "postgres":
        return sql
    normalized = _replace_insert_or_ignore(sql)
    normalized = normalized.replace("BEGIN IMMEDIATE", "BEGIN")
    normalized = _convert_qmark_to_percent(normalized)
    return normalized


def _replace_insert_or_ignore(sql: str) -> str:
    upper = sql.upper()
    if "INSERT OR IGNORE" not in upper:
        return sql
    idx = upper.find("INSERT OR IGNORE")
    replaced = sql[:idx] + "INSERT" + sql[idx + len("INSERT OR IGNORE") :]
    if "ON CONFLICT" in replaced.upper():
        return replaced
    stripped = replaced.rstrip().rstrip(";")
    return stripped + " ON CONFLICT DO NOTHING"


def _convert_qmark_to_percent(sql: str) -> str:
    out = []
    in_single = False
    in_double = False
    for ch in sql:
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        if ch == "?" and not in_single and not in_double:
            out.append("%s")
        elif ch == "%":
            out.append("%%")
        else:
            out.append(ch)
    return "".join(out)
