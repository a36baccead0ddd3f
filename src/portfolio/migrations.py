from __future__ import annotations

import logging
from typing import Any, Callable

from .utils import utc_now_iso

Migration = Callable[[Any], None]


def apply_migrations(conn: Any) -> None:
    # Schema changes go through new migrations only; never edit an applied one.
    logger = logging.getLogger("portfolio.migrations")
    conn.execute("BEGIN IMMEDIATE")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }
    try:
        for version, migration in _get_migrations():
            if version in applied:
                logger.debug("migration_skipped version=%s", version)
                continue
            migration(conn)
            conn.execute(
                "INSERT OR IGNORE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
            logger.info("migration_applied version=%s", version)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _id_column(conn: Any) -> str:
    if getattr(conn, "backend", "sqlite") == "postgres":
        return "id BIGSERIAL PRIMARY KEY"
    return "id INTEGER PRIMARY KEY AUTOINCREMENT"


def _migration_initial_schema(conn: Any) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS projects (
            {_id_column(conn)},
            slug TEXT NOT NULL UNIQUE,
            title_en TEXT NOT NULL,
            title_fa TEXT NULL,
            description_en TEXT NULL,
            description_fa TEXT NULL,
            github_url TEXT NULL,
            demo_url TEXT NULL,
            github_repo_id BIGINT NULL UNIQUE,
            github_repo_name TEXT NULL,
            github_stars INTEGER NOT NULL DEFAULT 0,
            github_forks INTEGER NOT NULL DEFAULT 0,
            github_language TEXT NULL,
            github_description TEXT NULL,
            github_updated_at TEXT NULL,
            github_last_sync_at TEXT NULL,
            is_github_synced INTEGER NOT NULL DEFAULT 0,
            is_featured INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'draft',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS articles (
            {_id_column(conn)},
            slug TEXT NOT NULL UNIQUE,
            title_en TEXT NOT NULL,
            title_fa TEXT NULL,
            excerpt_en TEXT NULL,
            excerpt_fa TEXT NULL,
            content_en TEXT NULL,
            content_fa TEXT NULL,
            status TEXT NOT NULL DEFAULT 'draft',
            scheduled_publish_at TEXT NULL,
            published_at TEXT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_articles_status_schedule
        ON articles(status, scheduled_publish_at)
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS github_sync_logs (
            {_id_column(conn)},
            sync_type TEXT NOT NULL,
            status TEXT NOT NULL,
            items_processed INTEGER NOT NULL DEFAULT 0,
            items_created INTEGER NOT NULL DEFAULT 0,
            items_updated INTEGER NOT NULL DEFAULT 0,
            error_message TEXT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT NOT NULL
        )
        """
    )


def _get_migrations() -> list[tuple[str, Migration]]:
    return [
        ("001_initial_schema", _migration_initial_schema),
    ]
