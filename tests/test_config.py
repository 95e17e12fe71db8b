from __future__ import annotations

import pytest

from townconnect.config import load_settings, settings_as_dict, update_config_file


def test_defaults_resolve_under_base_dir(settings, tmp_path):
    assert settings.backend == "memory"
    assert not settings.uses_sql
    assert settings.feed_limit == 50
    assert settings.data_dir == tmp_path / "data"
    assert settings.database_path == tmp_path / "data" / "townconnect.db"
    assert settings.config_path == tmp_path / "townconnect.toml"


def test_toml_values_are_cast(settings, tmp_path):
    (tmp_path / "townconnect.toml").write_text(
        'backend = "SQL"\nfeed_limit = "12"\ndata_dir = "state"\nlog_level = "debug"\n'
    )

    loaded = load_settings()

    assert loaded.backend == "sql"
    assert loaded.uses_sql
    assert loaded.feed_limit == 12
    assert loaded.log_level == "DEBUG"
    assert loaded.database_path == tmp_path / "state" / "townconnect.db"


def test_environment_beats_toml(settings, tmp_path, monkeypatch):
    (tmp_path / "townconnect.toml").write_text("seed_users = 3\n")
    monkeypatch.setenv("TOWNCONNECT_SEED_USERS", "30")
    monkeypatch.setenv("TOWNCONNECT_DB", str(tmp_path / "elsewhere.db"))

    loaded = load_settings()

    assert loaded.seed_users == 30
    assert loaded.database_path == tmp_path / "elsewhere.db"


def test_unknown_backend_is_rejected(settings, monkeypatch):
    monkeypatch.setenv("TOWNCONNECT_BACKEND", "postgres")
    with pytest.raises(ValueError):
        load_settings()


def test_update_config_file_merges_known_keys(settings, tmp_path):
    path = tmp_path / "conf" / "townconnect.toml"

    update_config_file({"feed_limit": 5, "unknown": "ignored"}, path=path)
    updated = update_config_file({"backend": "sql"}, path=path)

    text = path.read_text()
    assert 'backend = "sql"' in text
    assert "feed_limit = 5" in text
    assert "unknown" not in text
    assert updated.feed_limit == 5
    assert settings_as_dict(updated)["backend"] == "sql"
