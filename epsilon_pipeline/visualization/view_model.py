"""Render-ready view of an engine snapshot.

Joins an :class:`EngineState`, its derived activation and a
:class:`LocaleProvider` into plain dicts the Plotly and Matplotlib
renderers paint from.  Nothing here mutates the engine.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ..core.stage import Role, Stage
from ..core.state import EngineState
from ..i18n.locale import LocaleProvider
from ..simulation.engine import SequencerEngine

# Stage centres in diagram pixels (y grows downwards).
LAYOUT: dict[str, tuple[float, float]] = {
    "database": (450, 60),
    "warmup-note": (460, 165),
    "decision": (450, 280),
    "introspector": (240, 415),
    "random-picker": (660, 415),
    "selected-vars": (430, 525),
    "embedder": (240, 640),
    "forecasting": (660, 640),
    "history": (430, 770),
    "iteration-check": (430, 900),
    "update": (400, 1040),
}

PALETTE = {
    "inactive": ("rgba(40, 40, 70, 0.5)", "rgba(255, 255, 255, 0.08)"),
    "selected": ("#f87171", "#dc2626"),
    "data": ("#fbbf24", "#f59e0b"),
    "process": ("#fca5a5", "#f87171"),
    "explore": ("#34d399", "#059669"),
    "exploit": ("#60a5fa", "#2563eb"),
    "terminal": ("#9aa0a6", "#5f6368"),
}

EDGE_ACTIVE = "#f87171"
EDGE_IDLE = "rgba(154, 160, 166, 0.45)"


def stage_position(stage_id: str, index: int = 0) -> np.ndarray:
    """Diagram position of *stage_id*; unknown stages stack down the middle."""
    if stage_id in LAYOUT:
        return np.asarray(LAYOUT[stage_id], dtype=float)
    return np.array([450.0, 60.0 + 110.0 * index])


def stage_colors(
    stage: Stage, active: bool, selected: bool, exploring: bool
) -> tuple[str, str]:
    """``(fill, border)`` for a stage."""
    if not active:
        return PALETTE["inactive"]
    if selected:
        return PALETTE["selected"]
    if stage.role is Role.DATA:
        return PALETTE["data"]
    if stage.role is Role.DECISION:
        return PALETTE["explore" if exploring else "exploit"]
    if stage.role is Role.PROCESS:
        return PALETTE["process"]
    return PALETTE["terminal"]


def _status(
    engine: SequencerEngine, state: EngineState, text: LocaleProvider
) -> dict[str, Any]:
    values = text.state_values(state)
    if state.is_warmup:
        explanation = text.text("explain.warmup")
    elif state.is_exploring:
        explanation = text.text("explain.explore", **values)
    else:
        explanation = text.text("explain.exploit", **values)

    total = engine.step_count + 1
    current = state.step + 1
    return {
        "phase": text.text("phase.warmup" if state.is_warmup else "phase.active"),
        "is_warmup": state.is_warmup,
        "epsilon": values["epsilon_pct"],
        "random_draw": values["draw"],
        "draw_below_epsilon": state.random_draw < state.epsilon,
        "strategy": text.text(
            "strategy.explore" if state.is_exploring else "strategy.exploit"
        ),
        "is_exploring": state.is_exploring,
        "explanation": explanation,
        "iteration": state.iteration_count,
        "progress": {
            "current": current,
            "total": total,
            "percent": round(current / total * 100),
            "text": text.text("progress.step", current=current, total=total),
        },
    }


def _current_stage(
    engine: SequencerEngine, state: EngineState, active: dict[str, bool]
) -> Stage | None:
    for stage in engine.topology.stages_at_phase(state.step):
        if active[stage.id]:
            return stage
    return None


def build_view(
    engine: SequencerEngine,
    text: LocaleProvider,
    state: EngineState | None = None,
) -> dict[str, Any]:
    """Stage list, edge list and status panel for one snapshot."""
    s = state if state is not None else engine.state
    activation = engine.derive_activation(s)

    stages = []
    for index, stage in enumerate(engine.topology.stages):
        active = activation.stages[stage.id]
        selected = s.selected_stage_id == stage.id
        fill, border = stage_colors(stage, active, selected, s.is_exploring)
        x, y = stage_position(stage.id, index)
        stages.append({
            "id": stage.id,
            "role": stage.role.value,
            "label": text.stage_label(stage.id, s),
            "description": text.stage_description(stage.id, s),
            "active": active,
            "selected": selected,
            "fill": fill,
            "border": border,
            "x": float(x),
            "y": float(y),
        })

    edges = [
        {
            "id": edge.id,
            "from": edge.source,
            "to": edge.target,
            "active": activation.edges[edge.id],
            "label": text.edge_label(edge),
        }
        for edge in engine.topology.edges
    ]

    current = _current_stage(engine, s, activation.stages)
    if s.step >= engine.step_count:
        current_view = {"label": None, "description": text.text("current.complete")}
    elif current is not None:
        current_view = {
            "label": text.stage_label(current.id, s),
            "description": text.stage_description(current.id, s),
        }
    else:
        current_view = {"label": None, "description": ""}

    selected_view = None
    if s.selected_stage_id is not None and engine.topology.has_stage(s.selected_stage_id):
        selected_view = {
            "id": s.selected_stage_id,
            "label": text.stage_label(s.selected_stage_id, s),
            "description": text.stage_description(s.selected_stage_id, s),
        }

    return {
        "stages": stages,
        "edges": edges,
        "status": _status(engine, s, text),
        "current": current_view,
        "selected": selected_view,
        "complete": s.step >= engine.step_count,
        "running": s.is_running,
    }
