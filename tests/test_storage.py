from portfolio.models import Project
from portfolio.storage import (
    count_projects,
    get_article,
    get_sync_settings,
    init_db,
    insert_article,
    list_projects,
    schedule_article,
    set_setting,
    set_sync_settings,
    upsert_github_project,
)


def _project(repo_id: int = 42, stars: int = 1) -> Project:
    return Project(
        id=None,
        slug="octo-demo",
        title_en="demo",
        title_fa="demo",
        description_en="A demo",
        description_fa="A demo",
        github_url="https://github.com/octo/demo",
        demo_url=None,
        github_repo_id=repo_id,
        github_repo_name="octo/demo",
        github_stars=stars,
        github_forks=0,
        github_language="Python",
        github_description="A demo",
        github_updated_at="2026-01-01T00:00:00Z",
        is_github_synced=True,
    )


def test_migrations_idempotent(tmp_path):
    db_path = str(tmp_path / "state.sqlite3")
    init_db(db_path)
    conn = init_db(db_path)
    versions = [row[0] for row in conn.execute("SELECT version FROM schema_migrations").fetchall()]
    assert versions == ["001_initial_schema"]


def test_sync_settings_defaults_and_updates(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    settings = get_sync_settings(conn)
    assert settings.sync_enabled is False
    assert settings.username is None

    settings = set_sync_settings(conn, username=" octo ", sync_enabled=True)
    assert settings.username == "octo"
    assert settings.sync_enabled is True

    settings = set_sync_settings(conn, sync_enabled=False)
    assert settings.username == "octo"
    assert settings.sync_enabled is False


def test_sync_settings_accepts_string_flag(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    set_setting(conn, "github_sync_enabled", "true")
    assert get_sync_settings(conn).sync_enabled is True


def test_upsert_github_project_keyed_on_repo_id(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    assert upsert_github_project(conn, _project(stars=1), "2026-01-01T00:00:00+00:00") is True
    assert upsert_github_project(conn, _project(stars=7), "2026-01-02T00:00:00+00:00") is False
    assert count_projects(conn) == 1
    project = list_projects(conn)[0]
    assert project.github_stars == 7
    assert project.status == "draft"


def test_upsert_keeps_admin_owned_fields(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    upsert_github_project(conn, _project(), "2026-01-01T00:00:00+00:00")
    conn.execute(
        "UPDATE projects SET status = 'published', is_featured = 1, sort_order = 3"
    )
    conn.commit()

    upsert_github_project(conn, _project(stars=9), "2026-01-02T00:00:00+00:00")

    project = list_projects(conn, synced_only=True)[0]
    assert project.status == "published"
    assert project.is_featured is True
    assert project.sort_order == 3
    assert project.github_stars == 9


def test_schedule_article_only_moves_unpublished(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    draft_id = insert_article(conn, slug="draft", title_en="Draft")
    published_id = insert_article(
        conn,
        slug="live",
        title_en="Live",
        status="published",
        published_at="2026-01-01T00:00:00Z",
    )

    assert schedule_article(conn, draft_id, "2030-01-01T09:00:00Z") is True
    article = get_article(conn, draft_id)
    assert article.status == "scheduled"
    assert article.scheduled_publish_at == "2030-01-01T09:00:00+00:00"

    assert schedule_article(conn, published_id, "2030-01-01T09:00:00Z") is False
    assert get_article(conn, published_id).status == "published"
