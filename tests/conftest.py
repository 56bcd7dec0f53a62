"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import pytest

from epsilon_pipeline.simulation.engine import SequencerEngine
from epsilon_pipeline.simulation.pipeline import forecasting_pipeline


class ScriptedRandom:
    """Stands in for a numpy Generator; replays fixed draws, then repeats the last."""

    def __init__(self, *draws: float) -> None:
        self.draws = list(draws) or [0.5]
        self.calls = 0

    def random(self) -> float:
        idx = min(self.calls, len(self.draws) - 1)
        self.calls += 1
        return self.draws[idx]


@pytest.fixture
def topology():
    return forecasting_pipeline()


@pytest.fixture
def make_engine(topology):
    """Factory: ``make_engine(*draws, epsilon=0.4)``."""
    def factory(*draws: float, epsilon: float = 0.4, **kwargs) -> SequencerEngine:
        return SequencerEngine(
            topology, epsilon, rng=ScriptedRandom(*draws), **kwargs
        )
    return factory


@pytest.fixture
def engine(make_engine):
    return make_engine(0.5)


def run_to(engine: SequencerEngine, step: int) -> None:
    """Tick a running engine until it reaches *step*."""
    engine.start()
    while engine.state.step < step:
        engine.tick()


def finish_loops(engine: SequencerEngine, loops: int) -> None:
    """Complete *loops* full passes, continuing each with ``next_iteration``."""
    engine.start()
    for done in range(loops):
        while not engine.is_complete:
            engine.tick()
        if done < loops - 1:
            engine.next_iteration()
