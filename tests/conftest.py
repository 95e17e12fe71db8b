"""Shared pytest fixtures for TownConnect."""

from __future__ import annotations

import itertools
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from townconnect.backend import MemoryDataStore
from townconnect.config import load_settings
from townconnect.context import build_context
from townconnect.permissions import UserRole

NOW = datetime(2024, 12, 1, 12, 0, 0)


class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def settings(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("TOWNCONNECT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TOWNCONNECT_BASE_DIR", str(tmp_path))
    return load_settings()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture()
def now(clock):
    return clock.now


@pytest.fixture()
def datastore():
    return MemoryDataStore()


@pytest.fixture()
def context(datastore, settings, clock):
    return build_context(datastore, settings, clock=clock)


@pytest.fixture()
def make_user(context):
    counter = itertools.count(1)

    async def _make(handle: str | None = None, role=UserRole.RESIDENT, **kwargs):
        handle = handle or f"neighbor{next(counter)}"
        display_name = kwargs.pop("display_name", handle.title())
        return await context.users.create_user(
            handle=handle, display_name=display_name, role=role, **kwargs
        )

    return _make


@pytest.fixture()
def make_event(context):
    async def _make(host, *, title="Block Party", start=None, hours=2, **kwargs):
        start = start or NOW + timedelta(days=1)
        location = kwargs.pop("location", "Main Street")
        return await context.events.create_event(
            host.id,
            title=title,
            location=location,
            start_time=start,
            end_time=start + timedelta(hours=hours),
            **kwargs,
        )

    return _make
