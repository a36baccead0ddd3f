from __future__ import annotations

import argparse
import os
import sqlite3
from typing import Iterable

from portfolio.db import connect_db

TABLES = ("settings", "projects", "articles", "github_sync_logs")
SERIAL_TABLES = ("projects", "articles", "github_sync_logs")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy a SQLite state database into PostgreSQL")
    parser.add_argument("--sqlite", default=os.environ.get("PF_SQLITE_PATH", "/data/state.sqlite3"))
    parser.add_argument("--pg-url", default=os.environ.get("PF_DB_URL", ""))
    return parser.parse_args()


def _table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def _chunked(rows: Iterable[tuple], size: int = 500) -> Iterable[list[tuple]]:
    batch: list[tuple] = []
    for row in rows:
        batch.append(row)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def main() -> int:
    args = _parse_args()
    if not args.pg_url:
        raise SystemExit("PF_DB_URL is required for Postgres migration")
    os.environ["PF_DB_URL"] = args.pg_url

    sqlite_conn = sqlite3.connect(args.sqlite)
    # Creates the schema on the Postgres side before any rows are copied.
    pg_conn = connect_db(args.sqlite)

    for table in TABLES:
        columns = _table_columns(sqlite_conn, table)
        if not columns:
            continue
        cols_sql = ", ".join(columns)
        placeholders = ", ".join(["?"] * len(columns))
        insert_sql = (
            f"INSERT INTO {table} ({cols_sql}) VALUES ({placeholders}) "
            "ON CONFLICT DO NOTHING"
        )
        cursor = sqlite_conn.execute(f"SELECT {cols_sql} FROM {table}")
        for batch in _chunked(cursor.fetchall(), 500):
            pg_conn.executemany(insert_sql, batch)
            pg_conn.commit()
        print(f"copied {table}")

    for table in SERIAL_TABLES:
        pg_conn.execute(
            f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
        )
    pg_conn.commit()

    sqlite_conn.close()
    pg_conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
