from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("PF_DATA_DIR", str(tmp_path / "data"))
    for name in (
        "CRON_SECRET",
        "GITHUB_TOKEN",
        "SITE_URL",
        "PF_ADMIN_TOKEN",
        "PF_DB_URL",
        "PF_REVALIDATE_SECRET",
        "PF_LOG_FILE",
        "PF_LOG_LEVELS",
    ):
        monkeypatch.delenv(name, raising=False)
