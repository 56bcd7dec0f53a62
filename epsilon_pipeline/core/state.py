"""Engine state snapshot for the pipeline sequencer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineState:
    """A single immutable snapshot of the sequencer.

    The engine never mutates a snapshot in place; every operation builds a
    new one with :func:`dataclasses.replace`, so renderers can hold on to
    whatever they were handed.
    """

    epsilon: float
    step: int = 0
    is_running: bool = False
    random_draw: float = 0.5
    is_exploring: bool = False
    iteration_count: int = 1
    is_warmup: bool = True
    selected_stage_id: str | None = None


@dataclass(frozen=True)
class DecisionRecord:
    """One epsilon-greedy decision, recorded when the decision stage is entered."""

    iteration: int
    random_draw: float
    epsilon: float
    is_warmup: bool
    is_exploring: bool


@dataclass(frozen=True)
class Activation:
    """Derived activation of every stage and edge for one snapshot."""

    stages: dict[str, bool]
    edges: dict[str, bool]

    def is_active(self, key: str) -> bool:
        if key in self.stages:
            return self.stages[key]
        return self.edges.get(key, False)
