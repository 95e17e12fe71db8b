from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from townconnect.cli import app

runner = CliRunner()


@pytest.fixture()
def sql_backend(settings, monkeypatch):
    monkeypatch.setenv("TOWNCONNECT_BACKEND", "sql")
    return settings


def test_feed_with_memory_backend_shows_followed_hosts(settings):
    result = runner.invoke(app, ["feed", "jay"])

    assert result.exit_code == 0, result.output
    assert "Saturday Hike" in result.output
    assert "hosted by @sam" in result.output
    assert "2 going" in result.output
    assert "Board Game Night" not in result.output


def test_feed_for_unknown_handle_fails(settings):
    result = runner.invoke(app, ["feed", "nobody"])

    assert result.exit_code == 1


def test_config_show_prints_effective_settings(settings, tmp_path):
    result = runner.invoke(app, ["config", "--show"])

    assert result.exit_code == 0, result.output
    shown = json.loads(result.output)
    assert shown["backend"] == "memory"
    assert shown["config_path"] == str(tmp_path / "townconnect.toml")


def test_config_updates_file_and_rejects_bad_backend(settings, tmp_path):
    updated = runner.invoke(app, ["config", "--feed-limit", "7"])
    rejected = runner.invoke(app, ["config", "--backend", "postgres"])

    assert updated.exit_code == 0, updated.output
    assert "feed_limit = 7" in (tmp_path / "townconnect.toml").read_text()
    assert rejected.exit_code == 1
    assert "postgres" not in (tmp_path / "townconnect.toml").read_text()


def test_init_and_upgrade_db(sql_backend, tmp_path):
    init = runner.invoke(app, ["init-db"])
    upgrade = runner.invoke(app, ["upgrade-db", "--no-backup"])

    assert init.exit_code == 0, init.output
    assert (tmp_path / "data" / "townconnect.db").exists()
    assert upgrade.exit_code == 0, upgrade.output
    assert "Applied Alembic migrations to head" in upgrade.output


def test_seed_feed_and_reconcile_against_sql(sql_backend):
    seeded = runner.invoke(app, ["seed-data", "--demo"])
    feed = runner.invoke(app, ["feed", "@jay", "--limit", "5"])
    repaired = runner.invoke(app, ["reconcile"])

    assert seeded.exit_code == 0, seeded.output
    assert "Seed complete: 3 users" in seeded.output
    assert "Saturday Hike" in feed.output
    assert repaired.exit_code == 0, repaired.output
    assert "Reconcile complete" in repaired.output
    assert "'users_fixed': 0" in repaired.output
