"""Sequencer engine — advances the pipeline clock and runs the epsilon-greedy policy."""

from __future__ import annotations

from dataclasses import asdict, replace
from typing import Any, Callable

import numpy as np
import pandas as pd
from loguru import logger

from ..core.state import Activation, DecisionRecord, EngineState
from .pipeline import DECISION, ITERATION_CHECK, LOOP_ENTRY
from .topology import Topology

Listener = Callable[[EngineState], Any]

HISTORY_COLUMNS = ["iteration", "random_draw", "epsilon", "is_warmup", "is_exploring"]


class SequencerEngine:
    """Discrete step sequencer for the pipeline diagram.

    Each :meth:`tick` advances the step counter by one.  Entering the
    decision stage draws a fresh random value and picks explore/exploit;
    entering the iteration-check stage counts a completed loop and ends
    the warmup phase once enough loops have been observed.

    The engine owns exactly one :class:`EngineState` snapshot at a time and
    replaces it on every change.  None of the control operations raise.
    """

    def __init__(
        self,
        topology: Topology,
        epsilon: float = 0.4,
        *,
        warmup_iterations: int = 3,
        decision_stage: str = DECISION,
        iteration_stage: str = ITERATION_CHECK,
        loop_entry: str = LOOP_ENTRY,
        rng: np.random.Generator | None = None,
    ) -> None:
        if not 0.0 < epsilon < 1.0:
            raise ValueError(f"epsilon must lie in (0, 1), got {epsilon}")
        self.topology = topology
        self.epsilon = float(epsilon)
        self.warmup_iterations = warmup_iterations
        self.rng = rng or np.random.default_rng()
        self._decision_step = topology.stage_by_id(decision_stage).activation_threshold
        self._iteration_step = topology.stage_by_id(iteration_stage).activation_threshold
        self._loop_entry_step = topology.stage_by_id(loop_entry).activation_threshold
        self._listeners: list[Listener] = []
        self.state = EngineState(epsilon=self.epsilon)
        # One record per decision taken, for the history table
        self.history: list[DecisionRecord] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with every new snapshot.  Returns an unsubscribe hook."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: EngineState) -> EngineState:
        self.state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    @property
    def step_count(self) -> int:
        return self.topology.step_count

    @property
    def is_complete(self) -> bool:
        return self.state.step >= self.step_count

    def start(self) -> EngineState:
        """Run the sequencer, restarting first if the run already completed."""
        if self.is_complete:
            self._restore_defaults()
        if self.state.is_running:
            return self.state
        return self._commit(replace(self.state, is_running=True))

    def pause(self) -> EngineState:
        return self._commit(replace(self.state, is_running=False))

    def reset(self) -> EngineState:
        """Return to the construction defaults and stop."""
        self._restore_defaults()
        return self._commit(self.state)

    def _restore_defaults(self) -> None:
        self.state = EngineState(epsilon=self.epsilon)
        self.history.clear()

    def tick(self) -> EngineState:
        """Advance one step.

        No-op unless running and not yet complete.  A tick that finds the
        run complete stops it; the sequencer never wraps around by itself.
        """
        s = self.state
        if s.step >= self.step_count:
            if s.is_running:
                logger.info("Run complete after iteration {}", s.iteration_count)
                return self._commit(replace(s, is_running=False))
            return s
        if not s.is_running:
            return s

        step = s.step + 1
        changes: dict[str, Any] = {"step": step}

        if step == self._decision_step:
            draw = float(self.rng.random())
            exploring = True if s.is_warmup else draw < s.epsilon
            changes["random_draw"] = draw
            changes["is_exploring"] = exploring
            self.history.append(
                DecisionRecord(
                    iteration=s.iteration_count,
                    random_draw=draw,
                    epsilon=s.epsilon,
                    is_warmup=s.is_warmup,
                    is_exploring=exploring,
                )
            )
            logger.debug(
                "Decision: draw={:.3f} epsilon={} warmup={} -> {}",
                draw, s.epsilon, s.is_warmup, "explore" if exploring else "exploit",
            )

        if step == self._iteration_step:
            changes["iteration_count"] = s.iteration_count + 1
            # Compares the count from before this increment
            if s.is_warmup and s.iteration_count > self.warmup_iterations:
                changes["is_warmup"] = False
                logger.info("Warmup finished at iteration {}", s.iteration_count)

        logger.debug("Tick -> step {}", step)
        return self._commit(replace(s, **changes))

    def run(self, num_ticks: int) -> list[EngineState]:
        """Tick *num_ticks* times and return every resulting snapshot."""
        return [self.tick() for _ in range(num_ticks)]

    def next_iteration(self) -> EngineState:
        """Continue a completed run from the loop entry stage.

        Keeps the iteration counter, warmup flag and last decision, unlike
        :meth:`start`, which restarts from scratch.  No-op before completion.
        """
        if not self.is_complete:
            return self.state
        return self._commit(
            replace(self.state, step=self._loop_entry_step, is_running=True)
        )

    def select_stage(self, stage_id: str | None) -> EngineState:
        """Focus *stage_id*; selecting the focused stage again clears it."""
        current = self.state.selected_stage_id
        selected = None if stage_id == current else stage_id
        return self._commit(replace(self.state, selected_stage_id=selected))

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def derive_activation(self, state: EngineState | None = None) -> Activation:
        """Activation of every stage and edge for *state* (current by default)."""
        s = state if state is not None else self.state
        stages = {stage.id: stage.is_active(s) for stage in self.topology.stages}
        edges: dict[str, bool] = {}
        for edge in self.topology.edges:
            active = stages[edge.source] and stages[edge.target]
            if active and edge.branch_guard is not None:
                active = edge.branch_guard(s)
            if active and edge.branch is not None:
                source = self.topology.stage_by_id(edge.source)
                active = source.outcome is not None and edge.branch == source.outcome(s)
            edges[edge.id] = active
        return Activation(stages=stages, edges=edges)

    def history_frame(self) -> pd.DataFrame:
        """Decision history as a DataFrame, one row per decision."""
        return pd.DataFrame(
            [asdict(r) for r in self.history], columns=HISTORY_COLUMNS
        )
