"""
Pytest fixtures and test configuration for recall tests.
"""

import pytest

from recall.engine import Recall


class FakeClock:
    """Deterministic clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recall_engine(clock):
    """Engine with no collaborators and default options."""
    return Recall(clock=clock)


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep any event/log files written during a test inside tmp_path."""
    monkeypatch.setenv("RECALL_DATA_DIR", str(tmp_path / "recall-data"))
    return tmp_path / "recall-data"
