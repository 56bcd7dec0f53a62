"""The forecasting-pipeline topology.

Epsilon-greedy variable selection for time-series forecasting: pick
variables (randomly while exploring, through the introspector while
exploiting), embed them, forecast, log ``(embeddings, loss)`` and
periodically update the introspector and embedder.
"""

from __future__ import annotations

from ..core.stage import Edge, Role, Stage
from ..core.state import EngineState
from .topology import Topology

DATABASE = "database"
WARMUP_NOTE = "warmup-note"
DECISION = "decision"
INTROSPECTOR = "introspector"
RANDOM_PICKER = "random-picker"
SELECTED_VARS = "selected-vars"
EMBEDDER = "embedder"
FORECASTING = "forecasting"
HISTORY = "history"
ITERATION_CHECK = "iteration-check"
UPDATE = "update"

# Where a completed loop re-enters the pipeline (target of update -> warmup-note).
LOOP_ENTRY = WARMUP_NOTE

UPDATE_STEP = 9


def _exploring(state: EngineState) -> bool:
    return state.is_exploring


def _exploiting(state: EngineState) -> bool:
    return not state.is_exploring


def _update_reached(state: EngineState) -> bool:
    return state.step >= UPDATE_STEP


def forecasting_pipeline() -> Topology:
    """Build the validated forecasting-pipeline topology."""
    stages = [
        Stage(DATABASE, Role.DATA, 0),
        Stage(WARMUP_NOTE, Role.PROCESS, 1),
        Stage(DECISION, Role.DECISION, 2, outcome=_exploring),
        Stage(INTROSPECTOR, Role.PROCESS, 3, branch_guard=_exploiting),
        Stage(RANDOM_PICKER, Role.PROCESS, 3, branch_guard=_exploring),
        Stage(SELECTED_VARS, Role.DATA, 4),
        Stage(EMBEDDER, Role.PROCESS, 5),
        Stage(FORECASTING, Role.PROCESS, 6),
        Stage(HISTORY, Role.DATA, 7),
        Stage(ITERATION_CHECK, Role.DECISION, 8, outcome=_update_reached),
        Stage(UPDATE, Role.PROCESS, UPDATE_STEP),
    ]
    edges = [
        Edge(DATABASE, WARMUP_NOTE),
        Edge(WARMUP_NOTE, DECISION),
        Edge(DECISION, INTROSPECTOR, branch=False, label="edge.false"),
        Edge(DECISION, RANDOM_PICKER, branch=True, label="edge.true"),
        Edge(INTROSPECTOR, SELECTED_VARS),
        Edge(RANDOM_PICKER, SELECTED_VARS),
        Edge(SELECTED_VARS, EMBEDDER),
        Edge(SELECTED_VARS, FORECASTING),
        Edge(EMBEDDER, HISTORY, label="edge.embeddings"),
        Edge(FORECASTING, HISTORY, label="edge.forecast_loss"),
        Edge(HISTORY, ITERATION_CHECK),
        Edge(ITERATION_CHECK, UPDATE, branch=True, label="edge.true"),
        Edge(ITERATION_CHECK, WARMUP_NOTE, branch=False, label="edge.false"),
        Edge(UPDATE, WARMUP_NOTE, label="edge.metalearning"),
    ]
    return Topology(stages, edges)
