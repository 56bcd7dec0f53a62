"""Matplotlib-based static diagram rendering for headless runs."""

from __future__ import annotations

import textwrap
from typing import Any

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

from ..core.state import EngineState
from ..i18n.locale import LocaleProvider
from ..simulation.engine import SequencerEngine
from .view_model import EDGE_ACTIVE, EDGE_IDLE, build_view

_MARKERS = {"decision": "D", "data": "s", "process": "o", "terminal": "h"}


def _mpl_color(color: str) -> Any:
    """Convert ``rgba(r, g, b, a)`` strings to a Matplotlib RGBA tuple."""
    if color.startswith("rgba("):
        r, g, b, a = (float(v) for v in color[5:-1].split(","))
        return (r / 255, g / 255, b / 255, a)
    return color


class DiagramRenderer:
    """Renders a snapshot or an animated run of the pipeline diagram."""

    def __init__(self, engine: SequencerEngine, text: LocaleProvider | None = None) -> None:
        self.engine = engine
        self.text = text or LocaleProvider()

    def _draw(self, ax: Any, view: dict[str, Any]) -> None:
        ax.clear()
        pos = {s["id"]: np.array([s["x"], s["y"]]) for s in view["stages"]}

        for edge in view["edges"]:
            a, b = pos[edge["from"]], pos[edge["to"]]
            color = _mpl_color(EDGE_ACTIVE if edge["active"] else EDGE_IDLE)
            ax.annotate(
                "", xy=b, xytext=a,
                arrowprops=dict(
                    arrowstyle="-|>", color=color,
                    lw=2.0 if edge["active"] else 1.0,
                    linestyle="-" if edge["active"] else "--",
                    shrinkA=18, shrinkB=18,
                ),
                zorder=1,
            )
            if edge["label"]:
                mid = (a + b) / 2
                ax.text(mid[0], mid[1], edge["label"], fontsize=6,
                        color=color, ha="center", va="bottom", zorder=3)

        for stage in view["stages"]:
            x, y = pos[stage["id"]]
            ax.scatter(
                [x], [y], s=900, marker=_MARKERS.get(stage["role"], "o"),
                c=[_mpl_color(stage["fill"])],
                edgecolors=[_mpl_color(stage["border"])],
                linewidths=2.5 if stage["selected"] else 1.0, zorder=2,
            )
            ax.text(
                x, y + 38, textwrap.fill(stage["label"], 24),
                fontsize=7, ha="center", va="top", zorder=3,
                alpha=1.0 if stage["active"] else 0.4,
            )

        ax.set_xlim(100, 800)
        ax.set_ylim(1120, 0)
        ax.set_axis_off()

    def render_snapshot(
        self,
        state: EngineState | None = None,
        *,
        title: str | None = None,
        ax: Any = None,
    ) -> Any:
        """Draw the diagram for *state* (the current snapshot by default)."""
        if ax is None:
            _fig, ax = plt.subplots(1, 1, figsize=(7, 10))
        view = build_view(self.engine, self.text, state)
        self._draw(ax, view)
        ax.set_title(title or view["status"]["progress"]["text"])
        return ax

    def animate_run(
        self,
        num_ticks: int | None = None,
        *,
        interval_ms: int = 500,
    ) -> FuncAnimation:
        """Animate a run, ticking the engine once per frame.

        Starts the engine if it is not running.  *num_ticks* defaults to a
        full pass through every step.
        """
        frames = num_ticks if num_ticks is not None else self.engine.step_count
        fig, ax = plt.subplots(1, 1, figsize=(7, 10))
        self.engine.start()
        self.render_snapshot(ax=ax)

        def update(frame: int) -> Any:
            self.engine.tick()
            self.render_snapshot(ax=ax)
            return ()

        return FuncAnimation(fig, update, frames=frames,
                             interval=interval_ms, blit=False)
