from datetime import datetime, timedelta
from pathlib import Path

import pytest

from schemalock.lib.database import get_engine

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class FakeClock:
    """Manually advanced naive-UTC clock shared by stores in one test."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def engine():
    engine = get_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture
def db_url(tmp_path):
    """File-backed SQLite URL; one engine per simulated process shares it."""
    return f"sqlite:///{tmp_path / 'shared.db'}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def migrations_dir():
    return MIGRATIONS_DIR
