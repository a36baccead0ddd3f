from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .config import Config, get_github_token
from .github_sync import sync_github_projects
from .publisher import publish_scheduled_articles
from .revalidate import Revalidator, blog_paths, home_paths
from .storage import get_sync_settings
from .utils import json_dumps, log_event, utc_now_iso


class JobRequestError(ValueError):
    pass


@dataclass(frozen=True)
class TaskContext:
    conn: Any
    config: Config
    revalidator: Revalidator
    logger: logging.Logger
    now: str | None = None


TaskHandler = Callable[[TaskContext], dict[str, object]]


@dataclass(frozen=True)
class Task:
    name: str
    result_key: str
    label: str
    handler: TaskHandler


@dataclass
class JobRunResult:
    timestamp: str
    jobs: list[str]
    tasks: dict[str, dict[str, object] | None]
    errors: list[str] = field(default_factory=list)
    duration: int = 0

    @property
    def status_code(self) -> int:
        # Partial success is reported as 207, never as a server error.
        return 207 if self.errors else 200

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "duration": self.duration,
            "jobs": list(self.jobs),
            **self.tasks,
            "errors": list(self.errors),
        }


def _run_github_sync(ctx: TaskContext) -> dict[str, object]:
    settings = get_sync_settings(ctx.conn)
    if not settings.sync_enabled or not settings.username:
        log_event(ctx.logger, logging.INFO, "github_sync_skipped", enabled=settings.sync_enabled)
        return {"success": True, "skipped": True, "message": "GitHub sync not enabled"}
    result = sync_github_projects(
        ctx.conn,
        ctx.config.github,
        settings.username,
        token=get_github_token(),
    )
    for path in home_paths():
        ctx.revalidator.revalidate(path)
    return {"success": True, **result}


def _run_scheduled_publish(ctx: TaskContext) -> dict[str, object]:
    result = publish_scheduled_articles(ctx.conn, now=ctx.now)
    for path in blog_paths(list(result["slugs"])):
        ctx.revalidator.revalidate(path)
    return {"success": True, "published": result["count"]}


TASKS: dict[str, Task] = {
    "github": Task("github", "githubSync", "GitHub sync", _run_github_sync),
    "publish": Task("publish", "scheduledPublish", "Scheduled publish", _run_scheduled_publish),
}
DEFAULT_JOBS = ("github", "publish")


def parse_job_names(value: object) -> list[str]:
    if value is None:
        return list(DEFAULT_JOBS)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise JobRequestError("jobs must be a list of task names")
    unknown = sorted({item for item in value if item not in TASKS})
    if unknown:
        raise JobRequestError(
            f"unknown jobs: {', '.join(unknown)} (expected {', '.join(TASKS)})"
        )
    return [name for name in TASKS if name in value]


def run_jobs(
    conn,
    config: Config,
    job_names: object = None,
    revalidator: Revalidator | None = None,
    now: str | None = None,
) -> JobRunResult:
    """Run the requested reconciliation tasks one after another.

    A task that raises is recorded as ``{"success": False, "error": ...}``
    and does not stop the tasks after it.
    """
    logger = logging.getLogger("portfolio.jobs")
    names = parse_job_names(job_names)
    started = time.monotonic()
    result = JobRunResult(
        timestamp=utc_now_iso(),
        jobs=names,
        tasks={task.result_key: None for task in TASKS.values()},
    )
    ctx = TaskContext(
        conn=conn,
        config=config,
        revalidator=revalidator or Revalidator(),
        logger=logger,
        now=now,
    )
    for task in TASKS.values():
        if task.name not in names:
            continue
        log_event(logger, logging.DEBUG, "task_started", task=task.name)
        try:
            outcome = task.handler(ctx)
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            outcome = {"success": False, "error": message}
            result.errors.append(f"{task.label}: {message}")
            log_event(logger, logging.ERROR, "task_failed", task=task.name, error=message)
        result.tasks[task.result_key] = outcome

    result.duration = int((time.monotonic() - started) * 1000)
    log_event(
        logger,
        logging.INFO,
        "cron_completed",
        status=result.status_code,
        duration_ms=result.duration,
        result=json_dumps(result.to_dict()),
    )
    return result
