"""
Pytest fixtures for the court rotation tests.

Provides:
- a controllable clock
- an engine factory with deterministic team splitting
"""
import pytest

from helpers import FakeClock
from rotation_engine import CourtRotation, RotationConfig, ordered_tie_break


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_engine(clock):
    """Build an engine with players p01..pNN (all level 8 unless given)."""

    def _make(courts=2, players=0, levels=None, **overrides):
        overrides.setdefault("solver_workers", 1)
        config = RotationConfig(court_count=courts, **overrides)
        engine = CourtRotation(config, clock=clock, tie_break=ordered_tie_break)
        for i in range(1, players + 1):
            level = levels[i - 1] if levels else "8"
            engine.add_player(f"P{i}", level=level, player_id=f"p{i:02d}")
        return engine

    return _make


@pytest.fixture
def manual_engine(make_engine):
    """Eight players, two idle courts, empty queue, no automatic refills."""
    return make_engine(courts=2, players=8, auto_reconcile=False)
