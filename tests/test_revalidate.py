import io
import json
import logging
from dataclasses import replace
from urllib.error import HTTPError, URLError

import pytest

from portfolio import github_sync, revalidate
from portfolio.config import load_runtime_config
from portfolio.jobs import run_jobs
from portfolio.revalidate import (
    Revalidator,
    WebhookRevalidator,
    blog_paths,
    get_revalidator,
    home_paths,
)
from portfolio.storage import count_projects, init_db, set_sync_settings


class _FakeResponse:
    status = 200

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def test_webhook_posts_path_with_secret(monkeypatch):
    sent = []

    def _fake_urlopen(request, timeout=None):
        sent.append((request, timeout))
        return _FakeResponse()

    monkeypatch.setattr(revalidate, "urlopen", _fake_urlopen)

    WebhookRevalidator(
        "https://hooks.example.com/revalidate", secret="hook-secret", timeout_seconds=3
    ).revalidate("/fa/blog")

    request, timeout = sent[0]
    assert request.get_method() == "POST"
    assert request.full_url == "https://hooks.example.com/revalidate"
    assert json.loads(request.data) == {"path": "/fa/blog"}
    assert request.get_header("Authorization") == "Bearer hook-secret"
    assert timeout == 3


def test_webhook_without_secret_sends_no_auth(monkeypatch):
    sent = []
    monkeypatch.setattr(
        revalidate, "urlopen", lambda request, timeout=None: sent.append(request) or _FakeResponse()
    )

    WebhookRevalidator("https://hooks.example.com/revalidate").revalidate("/")

    assert sent[0].get_header("Authorization") is None


@pytest.mark.parametrize(
    "error",
    [
        HTTPError("https://hooks.example.com", 500, "Server Error", {}, io.BytesIO()),
        URLError("connection refused"),
    ],
)
def test_webhook_failures_are_logged(monkeypatch, caplog, error):
    def _failing(request, timeout=None):
        raise error

    monkeypatch.setattr(revalidate, "urlopen", _failing)

    with caplog.at_level(logging.WARNING, logger="portfolio.revalidate"):
        WebhookRevalidator("https://hooks.example.com/revalidate").revalidate("/en")

    assert "event=revalidate_failed path=/en" in caplog.text


def test_webhook_with_malformed_url_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="portfolio.revalidate"):
        WebhookRevalidator("hooks.example.com/revalidate").revalidate("/en")

    assert "event=revalidate_failed path=/en" in caplog.text


def test_malformed_webhook_does_not_fail_sync(tmp_path, monkeypatch):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    config = load_runtime_config(conn)
    set_sync_settings(conn, username="octo", sync_enabled=True)
    monkeypatch.setattr(
        github_sync,
        "fetch_repos",
        lambda *args, **kwargs: [{"id": 1, "name": "a", "full_name": "octo/a"}],
    )

    result = run_jobs(
        conn,
        config,
        ["github"],
        revalidator=WebhookRevalidator("hooks.example.com/revalidate"),
    )

    assert result.status_code == 200
    assert result.errors == []
    assert result.to_dict()["githubSync"]["synced"] == 1
    assert count_projects(conn) == 1


def test_get_revalidator_picks_webhook_only_when_configured(tmp_path, monkeypatch):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    config = load_runtime_config(conn)

    plain = get_revalidator(config)
    assert type(plain) is Revalidator

    monkeypatch.setenv("PF_REVALIDATE_SECRET", "hook-secret")
    webhook_config = replace(
        config,
        revalidate=replace(config.revalidate, webhook_url="https://hooks.example.com/r"),
    )
    webhook = get_revalidator(webhook_config)
    assert isinstance(webhook, WebhookRevalidator)
    assert webhook.url == "https://hooks.example.com/r"
    assert webhook.secret == "hook-secret"
    assert webhook.timeout_seconds == config.revalidate.timeout_seconds


def test_revalidation_paths():
    assert home_paths() == ["/", "/en", "/fa"]
    assert blog_paths(["post"]) == ["/en/blog", "/fa/blog", "/en/blog/post", "/fa/blog/post"]
