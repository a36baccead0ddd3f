from __future__ import annotations

import json
import os
from typing import Any

from .db import DBConn, connect_db
from .models import ARTICLE_STATUSES, Article, Project, SyncLog, SyncSettings
from .utils import json_dumps, to_utc_iso, utc_now_iso

DEFAULT_DATA_DIR = "/data"

GITHUB_USERNAME_KEY = "github_username"
GITHUB_SYNC_ENABLED_KEY = "github_sync_enabled"
GITHUB_LAST_RUN_KEY = "github_sync_last_run"


def get_state_db_path() -> str:
    data_dir = os.environ.get("PF_DATA_DIR", DEFAULT_DATA_DIR)
    return os.path.join(data_dir, "state.sqlite3")


def init_db(path: str | None = None) -> DBConn:
    return connect_db(path or get_state_db_path())


# settings


def get_setting(conn: Any, key: str, default: object) -> object:
    cursor = conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = cursor.fetchone()
    if not row:
        return default
    try:
        return json.loads(row[0])
    except json.JSONDecodeError:
        return default


def set_setting(conn: Any, key: str, value: object) -> None:
    payload = json_dumps(value)
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO settings (key, value, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, payload, now),
    )
    conn.commit()


def get_sync_settings(conn: Any) -> SyncSettings:
    username = get_setting(conn, GITHUB_USERNAME_KEY, None)
    enabled = get_setting(conn, GITHUB_SYNC_ENABLED_KEY, False)
    if isinstance(enabled, str):
        enabled = enabled.strip().lower() == "true"
    username = str(username).strip() if username is not None else ""
    return SyncSettings(sync_enabled=bool(enabled), username=username or None)


def set_sync_settings(
    conn: Any, *, username: str | None = None, sync_enabled: bool | None = None
) -> SyncSettings:
    if username is not None:
        set_setting(conn, GITHUB_USERNAME_KEY, username.strip())
    if sync_enabled is not None:
        set_setting(conn, GITHUB_SYNC_ENABLED_KEY, bool(sync_enabled))
    return get_sync_settings(conn)


# projects


def get_project_id_by_repo_id(conn: Any, github_repo_id: int) -> int | None:
    cursor = conn.execute(
        "SELECT id FROM projects WHERE github_repo_id = ?",
        (github_repo_id,),
    )
    row = cursor.fetchone()
    return int(row[0]) if row else None


def upsert_github_project(conn: Any, project: Project, synced_at: str) -> bool:
    """Insert or refresh a synced project keyed by its GitHub repository id.

    Returns True when a new row was created. Admin-owned columns (status,
    featured flag, sort order) are only written on insert. The slug follows
    the repository name; when another project already holds it, the
    repository id is appended.
    """
    if project.github_repo_id is None:
        raise ValueError("github_repo_id is required for synced projects")
    existed = get_project_id_by_repo_id(conn, project.github_repo_id) is not None
    slug = _available_project_slug(conn, project.slug, project.github_repo_id)
    conn.execute(
        """
        INSERT INTO projects
            (slug, title_en, title_fa, description_en, description_fa, github_url,
             demo_url, github_repo_id, github_repo_name, github_stars, github_forks,
             github_language, github_description, github_updated_at, github_last_sync_at,
             is_github_synced, is_featured, sort_order, status, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(github_repo_id) DO UPDATE SET
            slug=excluded.slug,
            title_en=excluded.title_en,
            title_fa=excluded.title_fa,
            description_en=excluded.description_en,
            description_fa=excluded.description_fa,
            github_url=excluded.github_url,
            demo_url=excluded.demo_url,
            github_repo_name=excluded.github_repo_name,
            github_stars=excluded.github_stars,
            github_forks=excluded.github_forks,
            github_language=excluded.github_language,
            github_description=excluded.github_description,
            github_updated_at=excluded.github_updated_at,
            github_last_sync_at=excluded.github_last_sync_at,
            is_github_synced=excluded.is_github_synced,
            updated_at=excluded.updated_at
        """,
        (
            slug,
            project.title_en,
            project.title_fa,
            project.description_en,
            project.description_fa,
            project.github_url,
            project.demo_url,
            project.github_repo_id,
            project.github_repo_name,
            project.github_stars,
            project.github_forks,
            project.github_language,
            project.github_description,
            project.github_updated_at,
            synced_at,
            1 if project.is_github_synced else 0,
            1 if project.is_featured else 0,
            project.sort_order,
            project.status,
            synced_at,
            synced_at,
        ),
    )
    conn.commit()
    return not existed


def _available_project_slug(conn: Any, slug: str, github_repo_id: int) -> str:
    row = conn.execute("SELECT github_repo_id FROM projects WHERE slug = ?", (slug,)).fetchone()
    if not row or row[0] == github_repo_id:
        return slug
    return f"{slug}-{github_repo_id}"


def list_projects(conn: Any, synced_only: bool = False) -> list[Project]:
    sql = """
        SELECT id, slug, title_en, title_fa, description_en, description_fa, github_url,
               demo_url, github_repo_id, github_repo_name, github_stars, github_forks,
               github_language, github_description, github_updated_at, is_github_synced,
               is_featured, sort_order, status
        FROM projects
    """
    if synced_only:
        sql += " WHERE is_github_synced = 1"
    sql += " ORDER BY sort_order ASC, created_at DESC, id DESC"
    cursor = conn.execute(sql)
    return [_row_to_project(row) for row in cursor.fetchall()]


def count_projects(conn: Any) -> int:
    return int(conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0])


def _row_to_project(row: tuple) -> Project:
    return Project(
        id=row[0],
        slug=row[1],
        title_en=row[2],
        title_fa=row[3],
        description_en=row[4],
        description_fa=row[5],
        github_url=row[6],
        demo_url=row[7],
        github_repo_id=row[8],
        github_repo_name=row[9],
        github_stars=int(row[10] or 0),
        github_forks=int(row[11] or 0),
        github_language=row[12],
        github_description=row[13],
        github_updated_at=row[14],
        is_github_synced=bool(row[15]),
        is_featured=bool(row[16]),
        sort_order=int(row[17] or 0),
        status=row[18],
    )


# github sync logs


def record_sync_log(
    conn: Any,
    *,
    sync_type: str,
    status: str,
    items_processed: int,
    items_created: int,
    items_updated: int,
    started_at: str,
    error_message: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO github_sync_logs
            (sync_type, status, items_processed, items_created, items_updated,
             error_message, started_at, completed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            sync_type,
            status,
            items_processed,
            items_created,
            items_updated,
            error_message,
            started_at,
            utc_now_iso(),
        ),
    )
    conn.commit()


def list_sync_logs(conn: Any, limit: int = 50) -> list[SyncLog]:
    cursor = conn.execute(
        """
        SELECT id, sync_type, status, items_processed, items_created, items_updated,
               error_message, started_at, completed_at
        FROM github_sync_logs
        ORDER BY started_at DESC, id DESC
        LIMIT ?
        """,
        (limit,),
    )
    return [
        SyncLog(
            id=row[0],
            sync_type=row[1],
            status=row[2],
            items_processed=row[3],
            items_created=row[4],
            items_updated=row[5],
            error_message=row[6],
            started_at=row[7],
            completed_at=row[8],
        )
        for row in cursor.fetchall()
    ]


# articles


def insert_article(
    conn: Any,
    *,
    slug: str,
    title_en: str,
    title_fa: str | None = None,
    excerpt_en: str | None = None,
    excerpt_fa: str | None = None,
    content_en: str | None = None,
    content_fa: str | None = None,
    status: str = "draft",
    scheduled_publish_at: str | None = None,
    published_at: str | None = None,
) -> int:
    if status not in ARTICLE_STATUSES:
        raise ValueError(f"unknown article status: {status}")
    now = utc_now_iso()
    cursor = conn.execute(
        """
        INSERT INTO articles
            (slug, title_en, title_fa, excerpt_en, excerpt_fa, content_en, content_fa,
             status, scheduled_publish_at, published_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            slug,
            title_en,
            title_fa,
            excerpt_en,
            excerpt_fa,
            content_en,
            content_fa,
            status,
            to_utc_iso(scheduled_publish_at) if scheduled_publish_at else None,
            to_utc_iso(published_at) if published_at else None,
            now,
            now,
        ),
    )
    article_id = int(cursor.fetchone()[0])
    conn.commit()
    return article_id


def get_article(conn: Any, article_id: int) -> Article | None:
    cursor = conn.execute(
        """
        SELECT id, slug, title_en, title_fa, status, scheduled_publish_at, published_at,
               updated_at, excerpt_en, excerpt_fa
        FROM articles
        WHERE id = ?
        """,
        (article_id,),
    )
    row = cursor.fetchone()
    if not row:
        return None
    return _row_to_article(row)


def schedule_article(conn: Any, article_id: int, scheduled_publish_at: str) -> bool:
    """Move a draft (or re-schedule a scheduled) article to ``scheduled``."""
    cursor = conn.execute(
        """
        UPDATE articles
        SET status = 'scheduled', scheduled_publish_at = ?, updated_at = ?
        WHERE id = ? AND status IN ('draft', 'scheduled')
        """,
        (to_utc_iso(scheduled_publish_at), utc_now_iso(), article_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def list_due_scheduled_articles(conn: Any, now_iso: str) -> list[Article]:
    cursor = conn.execute(
        """
        SELECT id, slug, title_en, title_fa, status, scheduled_publish_at, published_at,
               updated_at, excerpt_en, excerpt_fa
        FROM articles
        WHERE status = 'scheduled'
          AND scheduled_publish_at IS NOT NULL
          AND scheduled_publish_at <= ?
        ORDER BY scheduled_publish_at ASC, id ASC
        """,
        (now_iso,),
    )
    return [_row_to_article(row) for row in cursor.fetchall()]


def mark_article_published(conn: Any, article_id: int, now_iso: str) -> bool:
    # Conditional on status so overlapping runs publish an article at most once.
    cursor = conn.execute(
        """
        UPDATE articles
        SET status = 'published',
            published_at = ?,
            scheduled_publish_at = NULL,
            updated_at = ?
        WHERE id = ? AND status = 'scheduled'
        """,
        (now_iso, now_iso, article_id),
    )
    conn.commit()
    return cursor.rowcount == 1


def list_published_articles(conn: Any) -> list[Article]:
    cursor = conn.execute(
        """
        SELECT id, slug, title_en, title_fa, status, scheduled_publish_at, published_at,
               updated_at, excerpt_en, excerpt_fa
        FROM articles
        WHERE status = 'published'
        ORDER BY published_at DESC, id DESC
        """
    )
    return [_row_to_article(row) for row in cursor.fetchall()]


def _row_to_article(row: tuple) -> Article:
    return Article(
        id=row[0],
        slug=row[1],
        title_en=row[2],
        title_fa=row[3],
        status=row[4],
        scheduled_publish_at=row[5],
        published_at=row[6],
        updated_at=row[7],
        excerpt_en=row[8],
        excerpt_fa=row[9],
    )
