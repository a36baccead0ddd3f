from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from .config import GithubConfig
from .errors import UpstreamApiError
from .models import Project
from .storage import (
    GITHUB_LAST_RUN_KEY,
    record_sync_log,
    set_setting,
    upsert_github_project,
)
from .utils import log_event, utc_now_iso

RETRYABLE_STATUS = {429, 502, 503, 504}


def sync_github_projects(
    conn,
    config: GithubConfig,
    username: str,
    token: str | None = None,
) -> dict[str, object]:
    """Mirror ``username``'s repositories into the projects table.

    Projects are matched on the GitHub repository id, so repeated runs
    against an unchanged repository list update the same rows. A repository
    that cannot be stored is counted in ``failed`` and the rest still sync;
    only a failed fetch aborts the run.
    """
    logger = logging.getLogger("portfolio.github_sync")
    started_at = utc_now_iso()
    try:
        repos = fetch_repos(config, username, token)
    except Exception as exc:  # noqa: BLE001
        _log_failed_sync(conn, started_at, str(exc), logger)
        raise

    created = 0
    updated = 0
    failures: list[str] = []
    synced_at = utc_now_iso()
    for repo in repos:
        if repo.get("fork") and not config.include_forks:
            continue
        try:
            project = transform_repo(repo)
            if upsert_github_project(conn, project, synced_at):
                created += 1
            else:
                updated += 1
        except Exception as exc:  # noqa: BLE001
            name = repo.get("full_name") or repo.get("name") or repo.get("id")
            failures.append(f"{name}: {exc}")
            log_event(logger, logging.WARNING, "github_repo_sync_failed", repo=name, error=str(exc))

    synced = created + updated
    set_setting(conn, GITHUB_LAST_RUN_KEY, utc_now_iso())
    record_sync_log(
        conn,
        sync_type="repos",
        status="partial" if failures else "success",
        items_processed=synced + len(failures),
        items_created=created,
        items_updated=updated,
        started_at=started_at,
        error_message="; ".join(failures) or None,
    )
    log_event(
        logger,
        logging.INFO,
        "github_sync_completed",
        username=username,
        synced=synced,
        created=created,
        updated=updated,
        failed=len(failures),
    )
    message = f"Synced {synced} projects"
    if failures:
        message += f", {len(failures)} failed"
    return {
        "synced": synced,
        "created": created,
        "updated": updated,
        "failed": len(failures),
        "message": message,
    }


def _log_failed_sync(conn, started_at: str, message: str, logger: logging.Logger) -> None:
    log_event(logger, logging.ERROR, "github_sync_failed", error=message)
    try:
        record_sync_log(
            conn,
            sync_type="repos",
            status="error",
            items_processed=0,
            items_created=0,
            items_updated=0,
            started_at=started_at,
            error_message=message,
        )
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.WARNING, "github_sync_log_failed", error=str(exc))


def transform_repo(repo: dict[str, Any]) -> Project:
    full_name = str(repo.get("full_name") or repo.get("name") or "")
    repo_id = repo.get("id")
    if not full_name or repo_id is None:
        raise UpstreamApiError("GitHub API returned a repository without id or full_name")
    description = repo.get("description") or ""
    return Project(
        id=None,
        slug=full_name.lower().replace("/", "-"),
        title_en=str(repo.get("name") or full_name),
        title_fa=str(repo.get("name") or full_name),
        description_en=description,
        description_fa=description,
        github_url=repo.get("html_url"),
        demo_url=repo.get("homepage") or None,
        github_repo_id=int(repo_id),
        github_repo_name=full_name,
        github_stars=int(repo.get("stargazers_count") or 0),
        github_forks=int(repo.get("forks_count") or 0),
        github_language=repo.get("language"),
        github_description=repo.get("description"),
        github_updated_at=repo.get("pushed_at") or repo.get("updated_at"),
        is_github_synced=True,
        # New repositories wait for admin review before they show on the site.
        status="draft",
    )


def fetch_repos(config: GithubConfig, username: str, token: str | None = None) -> list[dict[str, Any]]:
    repos: list[dict[str, Any]] = []
    for page in range(1, config.max_pages + 1):
        batch = _fetch_page(config, username, token, page)
        repos.extend(batch)
        if len(batch) < config.per_page:
            break
    return repos


def _fetch_page(
    config: GithubConfig, username: str, token: str | None, page: int
) -> list[dict[str, Any]]:
    params = {
        "per_page": config.per_page,
        "page": page,
        "type": "owner",
        "sort": "updated",
    }
    url = f"{config.api_base}/users/{quote(username, safe='')}/repos?{urlencode(params)}"
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": config.user_agent,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    attempt = 0
    while True:
        try:
            request = Request(url, headers=headers)
            with urlopen(request, timeout=config.timeout_seconds) as response:
                payload = json.loads(response.read().decode("utf-8"))
            break
        except HTTPError as exc:
            if exc.code in RETRYABLE_STATUS and attempt < config.max_retries:
                time.sleep(config.backoff_seconds * (attempt + 1))
                attempt += 1
                continue
            remaining = (exc.headers or {}).get("X-RateLimit-Remaining")
            if exc.code == 403 and remaining == "0":
                raise UpstreamApiError("GitHub API rate limit exceeded", status=403) from exc
            raise UpstreamApiError(
                f"GitHub API error: {exc.code} {exc.reason}", status=exc.code
            ) from exc
        except URLError as exc:
            if attempt < config.max_retries:
                time.sleep(config.backoff_seconds * (attempt + 1))
                attempt += 1
                continue
            raise UpstreamApiError(f"GitHub API unreachable: {exc.reason}") from exc
        except json.JSONDecodeError as exc:
            raise UpstreamApiError("GitHub API returned invalid JSON") from exc
    if not isinstance(payload, list):
        raise UpstreamApiError("GitHub API returned an unexpected payload")
    return payload
