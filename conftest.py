"""Shared pytest fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from signal_alerts.models import Signal
from signal_alerts.storage import Storage

BASE_TIME = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for rate-limit and trigger timestamps."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "signals.sqlite"))


@pytest.fixture
def make_signal():
    counter = {"n": 0}

    def _make(title="Sample headline", **overrides):
        counter["n"] += 1
        fields = dict(
            id=f"sig-{counter['n']}",
            title=title,
            summary="",
            url=f"https://example.com/{counter['n']}",
            source_name="Example",
            timestamp=BASE_TIME,
            relevance_score=0.5,
            tags=[],
        )
        fields.update(overrides)
        return Signal(**fields)

    return _make
