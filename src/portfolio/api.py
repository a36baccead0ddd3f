from __future__ import annotations

import hmac
import json
import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import (
    ConfigError,
    bootstrap_runtime_config,
    get_admin_token,
    get_cron_secret,
    get_runtime_config,
    get_site_url,
    load_runtime_config,
    set_runtime_config,
)
from .errors import AuthenticationError
from .i18n import (
    LOCALE_COOKIE_MAX_AGE,
    LOCALE_COOKIE_NAME,
    generate_alternate_urls,
    has_locale_prefix,
    is_valid_locale,
    locale_redirect_path,
    resolve_preferred_locale,
    should_skip_locale,
)
from .jobs import JobRequestError, run_jobs
from .revalidate import get_revalidator
from .seo import build_page_metadata, build_robots_txt, build_sitemap_entries, render_sitemap_xml
from .storage import (
    get_article,
    get_sync_settings,
    init_db,
    list_projects,
    list_published_articles,
    list_sync_logs,
    schedule_article,
    set_sync_settings,
)
from .utils import configure_logging, log_event, utc_now_iso

app = FastAPI(title="Portfolio Site API")
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


def _require_cron_secret(request: Request) -> None:
    # Fail closed: with no CRON_SECRET configured nothing is authorized.
    secret = get_cron_secret()
    header = request.headers.get("Authorization") or ""
    if not secret or not hmac.compare_digest(header.encode(), f"Bearer {secret}".encode()):
        raise AuthenticationError("Invalid or missing CRON_SECRET")


def _require_admin_token(request: Request) -> None:
    token = get_admin_token()
    if not token:
        return
    header = request.headers.get("X-Admin-Token") or ""
    if not hmac.compare_digest(header.encode(), token.encode()):
        raise HTTPException(status_code=401, detail="unauthorized")


@app.exception_handler(AuthenticationError)
async def _authentication_error_handler(request: Request, exc: AuthenticationError):
    log_event(
        logging.getLogger("portfolio.api"),
        logging.WARNING,
        "unauthorized_request",
        path=request.url.path,
    )
    return JSONResponse({"error": "Unauthorized", "message": str(exc)}, status_code=401)


@app.middleware("http")
async def _locale_redirect_middleware(request: Request, call_next):
    path = request.url.path
    if request.method in ("GET", "HEAD") and not should_skip_locale(path):
        if not has_locale_prefix(path):
            locale = resolve_preferred_locale(
                request.cookies.get(LOCALE_COOKIE_NAME),
                request.headers.get("Accept-Language"),
            )
            target = locale_redirect_path(path, locale)
            if request.url.query:
                target = f"{target}?{request.url.query}"
            response = RedirectResponse(target, status_code=307)
            response.set_cookie(
                LOCALE_COOKIE_NAME,
                locale,
                max_age=LOCALE_COOKIE_MAX_AGE,
                path="/",
                samesite="lax",
            )
            return response
    return await call_next(request)


class GithubSettingsRequest(BaseModel):
    username: str | None = None
    sync_enabled: bool | None = None


class ScheduleRequest(BaseModel):
    scheduled_publish_at: datetime


class RuntimeConfigRequest(BaseModel):
    config: dict


@app.get("/health")
def health() -> dict[str, object]:
    return {
        "ok": True,
        "version": _get_version(),
        "time": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/cron", dependencies=[Depends(_require_cron_secret)])
def cron_run() -> JSONResponse:
    return _run_cron(None)


@app.post("/api/cron", dependencies=[Depends(_require_cron_secret)])
async def cron_run_selected(request: Request) -> JSONResponse:
    try:
        body = await request.body()
        payload = json.loads(body) if body.strip() else {}
        if not isinstance(payload, dict):
            raise JobRequestError("request body must be a JSON object")
    except (ValueError, UnicodeDecodeError) as exc:
        log_event(logging.getLogger("portfolio.api"), logging.ERROR, "cron_bad_request", error=str(exc))
        return _cron_error_response(str(exc))
    return await run_in_threadpool(_run_cron, payload.get("jobs"))


def _run_cron(job_names: object) -> JSONResponse:
    logger = logging.getLogger("portfolio.api")
    conn = None
    try:
        conn = _get_conn()
        config = load_runtime_config(conn)
        result = run_jobs(conn, config, job_names, revalidator=get_revalidator(config))
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.ERROR, "cron_failed", error=str(exc))
        return _cron_error_response(str(exc))
    finally:
        if conn is not None:
            conn.close()
    return JSONResponse(
        result.to_dict(),
        status_code=result.status_code,
        headers={"X-Cron-Duration": f"{result.duration}ms"},
    )


def _cron_error_response(message: str) -> JSONResponse:
    return JSONResponse(
        {
            "timestamp": utc_now_iso(),
            "duration": 0,
            "githubSync": None,
            "scheduledPublish": None,
            "error": message,
            "errors": [message],
        },
        status_code=500,
    )


@app.get("/sitemap.xml")
def sitemap() -> Response:
    conn = _get_conn()
    try:
        config = load_runtime_config(conn)
        entries = build_sitemap_entries(
            list_published_articles(conn),
            base_url=get_site_url(config),
            now=utc_now_iso(),
        )
    finally:
        conn.close()
    return Response(render_sitemap_xml(entries), media_type="application/xml")


@app.get("/robots.txt")
def robots() -> PlainTextResponse:
    conn = _get_conn()
    try:
        config = load_runtime_config(conn)
    finally:
        conn.close()
    return PlainTextResponse(build_robots_txt(get_site_url(config)))


@app.get("/api/seo/alternates")
def seo_alternates(path: str = "/") -> dict[str, object]:
    return generate_alternate_urls(path, get_site_url()).as_dict()


@app.get("/api/seo/metadata")
def seo_metadata(locale: str, path: str = "/", title: str = "", description: str = "") -> dict[str, object]:
    if not is_valid_locale(locale):
        raise HTTPException(status_code=404, detail="locale_not_found")
    return build_page_metadata(locale, path, title, description, base_url=get_site_url())


@app.get("/admin/settings/github", dependencies=[Depends(_require_admin_token)])
def github_settings_get() -> dict[str, object]:
    conn = _get_conn()
    try:
        settings = get_sync_settings(conn)
    finally:
        conn.close()
    return {"username": settings.username, "sync_enabled": settings.sync_enabled}


@app.put("/admin/settings/github", dependencies=[Depends(_require_admin_token)])
def github_settings_set(payload: GithubSettingsRequest) -> dict[str, object]:
    conn = _get_conn()
    try:
        settings = set_sync_settings(
            conn, username=payload.username, sync_enabled=payload.sync_enabled
        )
    finally:
        conn.close()
    log_event(
        logging.getLogger("portfolio.api"),
        logging.INFO,
        "github_settings_updated",
        username=settings.username,
        sync_enabled=settings.sync_enabled,
    )
    return {"username": settings.username, "sync_enabled": settings.sync_enabled}


@app.get("/admin/github/sync-logs", dependencies=[Depends(_require_admin_token)])
def github_sync_logs(limit: int = 50) -> list[dict[str, object]]:
    conn = _get_conn()
    try:
        logs = list_sync_logs(conn, limit=limit)
    finally:
        conn.close()
    return [
        {
            "id": log.id,
            "sync_type": log.sync_type,
            "status": log.status,
            "items_processed": log.items_processed,
            "items_created": log.items_created,
            "items_updated": log.items_updated,
            "error_message": log.error_message,
            "started_at": log.started_at,
            "completed_at": log.completed_at,
        }
        for log in logs
    ]


@app.get("/admin/projects", dependencies=[Depends(_require_admin_token)])
def projects_list(synced_only: bool = False) -> list[dict[str, object]]:
    conn = _get_conn()
    try:
        projects = list_projects(conn, synced_only=synced_only)
    finally:
        conn.close()
    return [
        {
            "id": project.id,
            "slug": project.slug,
            "title_en": project.title_en,
            "github_repo_id": project.github_repo_id,
            "github_repo_name": project.github_repo_name,
            "github_stars": project.github_stars,
            "is_github_synced": project.is_github_synced,
            "is_featured": project.is_featured,
            "status": project.status,
        }
        for project in projects
    ]


@app.post("/admin/articles/{article_id}/schedule", dependencies=[Depends(_require_admin_token)])
def article_schedule(article_id: int, payload: ScheduleRequest) -> dict[str, object]:
    when = payload.scheduled_publish_at
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    conn = _get_conn()
    try:
        article = get_article(conn, article_id)
        if not article:
            raise HTTPException(status_code=404, detail="article_not_found")
        if when <= datetime.now(tz=timezone.utc):
            raise HTTPException(
                status_code=400, detail="scheduled_publish_at must be in the future"
            )
        if not schedule_article(conn, article_id, when.isoformat()):
            raise HTTPException(
                status_code=400, detail=f"cannot schedule a {article.status} article"
            )
        updated = get_article(conn, article_id)
    finally:
        conn.close()
    return {
        "id": updated.id,
        "slug": updated.slug,
        "status": updated.status,
        "scheduled_publish_at": updated.scheduled_publish_at,
    }


@app.get("/admin/config/runtime", dependencies=[Depends(_require_admin_token)])
def runtime_config_get() -> dict[str, object]:
    conn = _get_conn()
    try:
        cfg = get_runtime_config(conn)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    finally:
        conn.close()
    return {"config": cfg}


@app.put("/admin/config/runtime", dependencies=[Depends(_require_admin_token)])
def runtime_config_set(payload: RuntimeConfigRequest) -> dict[str, object]:
    conn = _get_conn()
    try:
        set_runtime_config(conn, payload.config)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    finally:
        conn.close()
    return {"status": "ok"}


def _setup_logging() -> None:
    configure_logging("portfolio.api")


_setup_logging()


def _get_version() -> str:
    try:
        from importlib.metadata import version

        return version("portfolio-site")
    except Exception:  # noqa: BLE001
        return "unknown"


def _get_conn():
    conn = init_db()
    bootstrap_runtime_config(conn)
    return conn
