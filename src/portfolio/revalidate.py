from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .config import Config, get_revalidate_secret
from .i18n import I18N_CONFIG, LocaleConfig
from .utils import log_event


class Revalidator:
    """Marks rendered paths as stale. Calls never raise and return nothing."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("portfolio.revalidate")

    def revalidate(self, path: str) -> None:
        log_event(self.logger, logging.INFO, "revalidate_path", path=path)


class WebhookRevalidator(Revalidator):
    def __init__(
        self,
        url: str,
        secret: str | None = None,
        timeout_seconds: int = 5,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self.url = url
        self.secret = secret
        self.timeout_seconds = timeout_seconds

    def revalidate(self, path: str) -> None:
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["Authorization"] = f"Bearer {self.secret}"
        body = json.dumps({"path": path}).encode("utf-8")
        try:
            request = Request(self.url, data=body, headers=headers, method="POST")
            with urlopen(request, timeout=self.timeout_seconds) as response:
                status = response.status
        except HTTPError as exc:
            log_event(
                self.logger, logging.WARNING, "revalidate_failed", path=path, status=exc.code
            )
            return
        except (URLError, OSError, ValueError) as exc:
            log_event(
                self.logger, logging.WARNING, "revalidate_failed", path=path, error=str(exc)
            )
            return
        log_event(self.logger, logging.INFO, "revalidate_path", path=path, status=status)


def get_revalidator(config: Config) -> Revalidator:
    if config.revalidate.webhook_url:
        return WebhookRevalidator(
            config.revalidate.webhook_url,
            secret=get_revalidate_secret(),
            timeout_seconds=config.revalidate.timeout_seconds,
        )
    return Revalidator()


def home_paths(config: LocaleConfig = I18N_CONFIG) -> list[str]:
    return ["/"] + [f"/{locale}" for locale in config.locales]


def blog_paths(slugs: list[str] | None = None, config: LocaleConfig = I18N_CONFIG) -> list[str]:
    paths = [f"/{locale}/blog" for locale in config.locales]
    for slug in slugs or []:
        paths.extend(f"/{locale}/blog/{slug}" for locale in config.locales)
    return paths
