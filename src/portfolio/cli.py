from __future__ import annotations

import argparse
import json
import logging
import sys

import uvicorn

from .config import (
    ConfigError,
    get_runtime_config,
    get_site_url,
    load_config_file,
    load_runtime_config,
    set_runtime_config,
)
from .i18n import generate_alternate_urls
from .jobs import JobRequestError, run_jobs
from .revalidate import get_revalidator
from .seo import build_sitemap_entries, render_sitemap_xml
from .storage import get_sync_settings, init_db, list_published_articles, set_sync_settings
from .utils import configure_logging, log_event, utc_now_iso


def _setup_logging() -> logging.Logger:
    return configure_logging("portfolio")


def _cmd_cron(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db()
    try:
        config = load_runtime_config(conn)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    jobs = None
    if args.jobs:
        jobs = [item.strip() for item in args.jobs.split(",") if item.strip()]
    try:
        result = run_jobs(conn, config, jobs, revalidator=get_revalidator(config))
    except JobRequestError as exc:
        log_event(logger, logging.ERROR, "invalid_jobs", error=str(exc))
        return 1
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.status_code == 200 else 2


def _cmd_settings_github(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db()
    if args.username is not None or args.enabled is not None:
        settings = set_sync_settings(conn, username=args.username, sync_enabled=args.enabled)
        log_event(
            logger,
            logging.INFO,
            "github_settings_updated",
            username=settings.username,
            sync_enabled=settings.sync_enabled,
        )
    else:
        settings = get_sync_settings(conn)
    print(json.dumps({"username": settings.username, "sync_enabled": settings.sync_enabled}))
    return 0


def _cmd_config_import(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        cfg = load_config_file(args.path)
        conn = init_db()
        set_runtime_config(conn, cfg)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    log_event(logger, logging.INFO, "config_imported", path=args.path)
    return 0


def _cmd_config_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db()
    try:
        cfg = get_runtime_config(conn)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    print(json.dumps(cfg, indent=2, ensure_ascii=False))
    return 0


def _cmd_sitemap(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db()
    try:
        config = load_runtime_config(conn)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    base_url = args.base_url or get_site_url(config)
    entries = build_sitemap_entries(list_published_articles(conn), base_url, utc_now_iso())
    sys.stdout.write(render_sitemap_xml(entries) + "\n")
    return 0


def _cmd_alternates(args: argparse.Namespace, logger: logging.Logger) -> int:
    base_url = args.base_url or get_site_url()
    alternates = generate_alternate_urls(args.path, base_url)
    print(json.dumps(alternates.as_dict(), indent=2, ensure_ascii=False))
    return 0


def _cmd_serve(args: argparse.Namespace, logger: logging.Logger) -> int:
    log_event(logger, logging.INFO, "server_starting", host=args.host, port=args.port)
    uvicorn.run("portfolio.api:app", host=args.host, port=args.port, proxy_headers=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portfolio", description="Portfolio site tooling")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cron_parser = subparsers.add_parser("cron", help="Run the reconciliation tasks once")
    cron_parser.add_argument(
        "--jobs",
        default=None,
        help="Comma-separated tasks to run (github,publish); defaults to all",
    )
    cron_parser.set_defaults(func=_cmd_cron)

    settings_parser = subparsers.add_parser("settings", help="Manage site settings")
    settings_subparsers = settings_parser.add_subparsers(dest="settings_command", required=True)
    github_parser = settings_subparsers.add_parser("github", help="Show or update GitHub sync")
    github_parser.add_argument("--username", default=None, help="GitHub account to mirror")
    github_parser.add_argument(
        "--enable", dest="enabled", action="store_true", default=None, help="Enable sync"
    )
    github_parser.add_argument(
        "--disable", dest="enabled", action="store_false", default=None, help="Disable sync"
    )
    github_parser.set_defaults(func=_cmd_settings_github)

    config_parser = subparsers.add_parser("config", help="Manage runtime config")
    config_subparsers = config_parser.add_subparsers(dest="config_command", required=True)
    config_import = config_subparsers.add_parser("import", help="Load runtime config from YAML")
    config_import.add_argument("path", help="Path to config YAML")
    config_import.set_defaults(func=_cmd_config_import)
    config_show = config_subparsers.add_parser("show", help="Print runtime config")
    config_show.set_defaults(func=_cmd_config_show)

    sitemap_parser = subparsers.add_parser("sitemap", help="Print sitemap XML")
    sitemap_parser.add_argument("--base-url", default=None, help="Override the site URL")
    sitemap_parser.set_defaults(func=_cmd_sitemap)

    alternates_parser = subparsers.add_parser("alternates", help="Print hreflang URLs for a path")
    alternates_parser.add_argument("path", help="Page path, with or without locale prefix")
    alternates_parser.add_argument("--base-url", default=None, help="Override the site URL")
    alternates_parser.set_defaults(func=_cmd_alternates)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = _setup_logging()
    return args.func(args, logger)


if __name__ == "__main__":
    raise SystemExit(main())
