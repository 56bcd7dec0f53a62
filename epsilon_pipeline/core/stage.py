"""Stage and edge model for the pipeline diagram."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .state import EngineState

Guard = Callable[[EngineState], bool]


class Role(str, Enum):
    DATA = "data"
    PROCESS = "process"
    DECISION = "decision"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class Stage:
    """A named point in the simulated pipeline.

    ``activation_threshold`` is the step index at which the stage lights up.
    ``branch_guard`` restricts stages that only exist on one side of a
    decision, and ``outcome`` is the boolean a decision stage evaluates to
    (it picks which outgoing branch edge is taken).
    """

    id: str
    role: Role
    activation_threshold: int
    branch_guard: Guard | None = None
    outcome: Guard | None = None

    def is_active(self, state: EngineState) -> bool:
        if state.step < self.activation_threshold:
            return False
        return self.branch_guard is None or self.branch_guard(state)


@dataclass(frozen=True)
class Edge:
    """A directed connection between two stages.

    ``branch`` is the declared branch (``True``/``False``) of a conditional
    edge leaving a decision stage; ``label`` is a semantic text key, not
    display text.
    """

    source: str
    target: str
    branch: bool | None = None
    branch_guard: Guard | None = None
    label: str | None = None

    @property
    def id(self) -> str:
        return f"{self.source}->{self.target}"
