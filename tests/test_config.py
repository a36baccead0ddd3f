import copy

import pytest

from portfolio.config import (
    CONFIG_KEY,
    DEFAULT_CONFIG,
    ConfigError,
    bootstrap_runtime_config,
    get_site_url,
    load_config_file,
    load_runtime_config,
    set_runtime_config,
    validate_runtime_config,
)
from portfolio.storage import get_setting, init_db


def test_bootstrap_writes_defaults(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    cfg = bootstrap_runtime_config(conn)
    assert cfg == DEFAULT_CONFIG
    assert get_setting(conn, CONFIG_KEY, None) == DEFAULT_CONFIG


def test_load_runtime_config_builds_dataclasses(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    config = load_runtime_config(conn)
    assert config.site.base_url == "https://hasanshiri.online"
    assert config.github.api_base == "https://api.github.com"
    assert config.github.per_page == 100
    assert config.revalidate.webhook_url == ""


def test_set_runtime_config_round_trips(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["github"]["include_forks"] = False
    cfg["site"]["base_url"] = "https://example.com/"
    set_runtime_config(conn, cfg)
    config = load_runtime_config(conn)
    assert config.github.include_forks is False
    assert config.site.base_url == "https://example.com"


def test_validate_rejects_bad_types():
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["github"]["per_page"] = True
    cfg["github"]["max_pages"] = -1
    cfg["site"]["extra"] = 1
    del cfg["revalidate"]["timeout_seconds"]
    errors = validate_runtime_config(cfg)
    assert "config.runtime.github.per_page must be an integer" in errors
    assert "config.runtime.github.max_pages must be >= 0" in errors
    assert "unknown config.runtime.site.extra" in errors
    assert "missing config.runtime.revalidate.timeout_seconds" in errors


def test_set_runtime_config_rejects_invalid(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    with pytest.raises(ConfigError):
        set_runtime_config(conn, {"site": {"base_url": "https://example.com"}})


def test_load_config_file_merges_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("github:\n  include_forks: false\n  per_page: 50\n", encoding="utf-8")
    cfg = load_config_file(str(path))
    assert cfg["github"]["include_forks"] is False
    assert cfg["github"]["per_page"] == 50
    assert cfg["site"] == DEFAULT_CONFIG["site"]


def test_load_config_file_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_config_file(str(tmp_path / "missing.yml"))
    bad = tmp_path / "bad.yml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(str(bad))


def test_site_url_env_overrides_config(tmp_path, monkeypatch):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    config = load_runtime_config(conn)
    assert get_site_url(config) == "https://hasanshiri.online"
    monkeypatch.setenv("SITE_URL", "https://preview.example.com/")
    assert get_site_url(config) == "https://preview.example.com"
    assert get_site_url() == "https://preview.example.com"


def test_validate_rejects_malformed_urls_and_ranges():
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["revalidate"]["webhook_url"] = "hooks.example.com/revalidate"
    cfg["github"]["api_base"] = "ftp://api.github.com"
    cfg["github"]["per_page"] = 0
    cfg["github"]["max_pages"] = 0
    errors = validate_runtime_config(cfg)
    assert "config.runtime.revalidate.webhook_url must be an http(s) URL" in errors
    assert "config.runtime.github.api_base must be an http(s) URL" in errors
    assert "config.runtime.github.per_page must be between 1 and 100" in errors
    assert "config.runtime.github.max_pages must be >= 1" in errors


def test_validate_accepts_webhook_url(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["revalidate"]["webhook_url"] = "https://hooks.example.com/revalidate"
    set_runtime_config(conn, cfg)
    assert load_runtime_config(conn).revalidate.webhook_url == (
        "https://hooks.example.com/revalidate"
    )
    cfg["github"]["per_page"] = 101
    with pytest.raises(ConfigError):
        set_runtime_config(conn, cfg)
