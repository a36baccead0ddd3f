from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import yaml

from .storage import get_setting, set_setting


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class SiteConfig:
    base_url: str


@dataclass(frozen=True)
class GithubConfig:
    api_base: str
    per_page: int
    max_pages: int
    timeout_seconds: int
    max_retries: int
    backoff_seconds: float
    user_agent: str
    include_forks: bool


@dataclass(frozen=True)
class RevalidateConfig:
    webhook_url: str
    timeout_seconds: int


@dataclass(frozen=True)
class Config:
    site: SiteConfig
    github: GithubConfig
    revalidate: RevalidateConfig


DEFAULT_CONFIG: dict[str, Any] = {
    "site": {
        "base_url": "https://hasanshiri.online",
    },
    "github": {
        "api_base": "https://api.github.com",
        "per_page": 100,
        "max_pages": 10,
        "timeout_seconds": 20,
        "max_retries": 2,
        "backoff_seconds": 2.0,
        "user_agent": "portfolio-site/0.1",
        "include_forks": True,
    },
    "revalidate": {
        "webhook_url": "",
        "timeout_seconds": 5,
    },
}

CONFIG_KEY = "config.runtime"
GITHUB_MAX_PER_PAGE = 100


# Secrets and the public site URL are read on every call so rotation takes
# effect without a restart.


def get_cron_secret() -> str | None:
    return os.environ.get("CRON_SECRET") or None


def get_github_token() -> str | None:
    return os.environ.get("GITHUB_TOKEN") or None


def get_admin_token() -> str | None:
    return os.environ.get("PF_ADMIN_TOKEN") or None


def get_revalidate_secret() -> str | None:
    return os.environ.get("PF_REVALIDATE_SECRET") or None


def get_site_url(config: Config | None = None) -> str:
    url = os.environ.get("SITE_URL", "").strip()
    if not url:
        url = config.site.base_url if config else DEFAULT_CONFIG["site"]["base_url"]
    return url.rstrip("/")


def bootstrap_runtime_config(conn) -> dict[str, Any]:
    cfg = get_setting(conn, CONFIG_KEY, None)
    if cfg is None:
        set_setting(conn, CONFIG_KEY, _deep_copy(DEFAULT_CONFIG))
        cfg = get_setting(conn, CONFIG_KEY, None)
    if not isinstance(cfg, dict):
        raise ConfigError("config.runtime must be a JSON object")
    return cfg


def get_runtime_config(conn) -> dict[str, Any]:
    cfg = bootstrap_runtime_config(conn)
    errors = validate_runtime_config(cfg)
    if errors:
        raise ConfigError("Invalid config.runtime: " + "; ".join(errors))
    return cfg


def set_runtime_config(conn, cfg: dict[str, Any]) -> None:
    errors = validate_runtime_config(cfg)
    if errors:
        raise ConfigError("Invalid config.runtime: " + "; ".join(errors))
    set_setting(conn, CONFIG_KEY, _deep_copy(cfg))


def load_runtime_config(conn) -> Config:
    cfg = get_runtime_config(conn)
    return _build_config(cfg)


def load_config_file(path: str) -> dict[str, Any]:
    """Read a YAML runtime config, filling omitted keys from the defaults."""
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping")
    merged = _merge(_deep_copy(DEFAULT_CONFIG), raw)
    errors = validate_runtime_config(merged)
    if errors:
        raise ConfigError("Invalid config.runtime: " + "; ".join(errors))
    return merged


def validate_runtime_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config.runtime", errors)
    if not errors:
        _validate_rules(cfg, errors)
    return errors


def _validate_rules(cfg: dict[str, Any], errors: list[str]) -> None:
    _validate_http_url(cfg["site"]["base_url"], "config.runtime.site.base_url", errors)
    _validate_http_url(cfg["github"]["api_base"], "config.runtime.github.api_base", errors)
    webhook_url = cfg["revalidate"]["webhook_url"].strip()
    if webhook_url:
        _validate_http_url(webhook_url, "config.runtime.revalidate.webhook_url", errors)
    per_page = cfg["github"]["per_page"]
    if not 1 <= per_page <= GITHUB_MAX_PER_PAGE:
        errors.append(
            f"config.runtime.github.per_page must be between 1 and {GITHUB_MAX_PER_PAGE}"
        )
    if cfg["github"]["max_pages"] < 1:
        errors.append("config.runtime.github.max_pages must be >= 1")
    if cfg["github"]["timeout_seconds"] < 1:
        errors.append("config.runtime.github.timeout_seconds must be >= 1")
    if cfg["github"]["backoff_seconds"] < 0:
        errors.append("config.runtime.github.backoff_seconds must be >= 0")


def _validate_http_url(value: str, path: str, errors: list[str]) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"{path} must be an http(s) URL")


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        elif value < 0:
            errors.append(f"{path} must be >= 0")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def _build_config(cfg: dict[str, Any]) -> Config:
    site_cfg = cfg.get("site") or {}
    github_cfg = cfg.get("github") or {}
    revalidate_cfg = cfg.get("revalidate") or {}

    site = SiteConfig(base_url=str(site_cfg.get("base_url")).rstrip("/"))

    github = GithubConfig(
        api_base=str(github_cfg.get("api_base")).rstrip("/"),
        per_page=int(github_cfg.get("per_page")),
        max_pages=int(github_cfg.get("max_pages")),
        timeout_seconds=int(github_cfg.get("timeout_seconds")),
        max_retries=int(github_cfg.get("max_retries")),
        backoff_seconds=float(github_cfg.get("backoff_seconds")),
        user_agent=str(github_cfg.get("user_agent")),
        include_forks=bool(github_cfg.get("include_forks")),
    )

    revalidate = RevalidateConfig(
        webhook_url=str(revalidate_cfg.get("webhook_url") or "").strip(),
        timeout_seconds=int(revalidate_cfg.get("timeout_seconds")),
    )

    return Config(site=site, github=github, revalidate=revalidate)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base


def _deep_copy(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value))
