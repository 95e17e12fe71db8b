"""Layered configuration for TownConnect.

Values resolve from ``TOWNCONNECT_<KEY>`` environment variables first, then the
TOML config file, then ``DEFAULTS``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

BACKENDS = {"memory", "sql"}

DEFAULTS: dict[str, Any] = {
    "backend": "memory",
    "log_level": "INFO",
    "feed_limit": 50,
    "seed_users": 12,
    "seed_events_per_user": 2,
    "seed_follows_per_user": 4,
    "seed_rsvps_per_event": 5,
    "seed_private_percent": 10,
}

TYPE_CASTERS: dict[str, Callable[[Any], Any]] = {
    "backend": str,
    "log_level": str,
    "feed_limit": int,
    "seed_users": int,
    "seed_events_per_user": int,
    "seed_follows_per_user": int,
    "seed_rsvps_per_event": int,
    "seed_private_percent": int,
}


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    data_dir: Path
    database_path: Path
    backend: str
    log_level: str
    feed_limit: int
    seed_users: int
    seed_events_per_user: int
    seed_follows_per_user: int
    seed_rsvps_per_event: int
    seed_private_percent: int
    config_path: Path

    @property
    def uses_sql(self) -> bool:
        return self.backend == "sql"


def _cast_value(key: str, value: Any) -> Any:
    if key not in TYPE_CASTERS:
        return value
    return TYPE_CASTERS[key](value)


def _load_toml_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        return tomllib.load(handle)


def _config_layered_value(key: str, *, toml_config: dict[str, Any]) -> Any:
    env_key = f"TOWNCONNECT_{key.upper()}"
    if env_key in os.environ:
        return _cast_value(key, os.environ[env_key])
    if key in toml_config:
        return _cast_value(key, toml_config[key])
    return DEFAULTS[key]


def _resolve_paths(
    *,
    base_dir: Path,
    data_dir: str | Path | None,
    database_path: str | Path | None,
):
    resolved_base = Path(base_dir)
    resolved_data = Path(data_dir) if data_dir else resolved_base / "data"
    if not resolved_data.is_absolute():
        resolved_data = resolved_base / resolved_data
    resolved_db = (
        Path(database_path) if database_path else resolved_data / "townconnect.db"
    )
    if not resolved_db.is_absolute():
        resolved_db = resolved_base / resolved_db
    return resolved_base, resolved_data, resolved_db


def load_settings(config_override: Path | None = None) -> Settings:
    base_dir = Path(os.getenv("TOWNCONNECT_BASE_DIR", Path.cwd()))
    env_config = os.getenv("TOWNCONNECT_CONFIG")
    config_path = Path(config_override or env_config or base_dir / "townconnect.toml")
    toml_config = _load_toml_config(config_path)

    base_dir_value, data_dir_value, database_path_value = _resolve_paths(
        base_dir=base_dir,
        data_dir=os.getenv("TOWNCONNECT_DATA_DIR", toml_config.get("data_dir")),
        database_path=os.getenv("TOWNCONNECT_DB", toml_config.get("database_path")),
    )

    values = {key: _config_layered_value(key, toml_config=toml_config) for key in DEFAULTS}
    backend = values["backend"].strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r}; expected one of {sorted(BACKENDS)}")
    values["backend"] = backend
    values["log_level"] = values["log_level"].strip().upper()

    return Settings(
        base_dir=base_dir_value,
        data_dir=data_dir_value,
        database_path=database_path_value,
        config_path=config_path,
        **values,
    )


def settings_as_dict(settings: Settings) -> dict[str, Any]:
    return {
        "base_dir": str(settings.base_dir),
        "data_dir": str(settings.data_dir),
        "database_path": str(settings.database_path),
        "backend": settings.backend,
        "log_level": settings.log_level,
        "feed_limit": settings.feed_limit,
        "seed_users": settings.seed_users,
        "seed_events_per_user": settings.seed_events_per_user,
        "seed_follows_per_user": settings.seed_follows_per_user,
        "seed_rsvps_per_event": settings.seed_rsvps_per_event,
        "seed_private_percent": settings.seed_private_percent,
    }


def _toml_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def write_config_file(config: dict[str, Any], *, path: Path) -> None:
    lines = ["# TownConnect configuration\n"]
    for key in sorted(config.keys()):
        lines.append(f"{key} = {_toml_literal(config[key])}\n")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(lines), encoding="utf-8")


def update_config_file(updates: dict[str, Any], *, path: Path) -> Settings:
    existing = _load_toml_config(path)
    merged = {**existing}
    for key, value in updates.items():
        if key not in DEFAULTS:
            continue
        merged[key] = _cast_value(key, value)
    write_config_file(merged, path=path)
    return load_settings(path)
