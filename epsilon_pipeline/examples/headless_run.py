"""Headless sequencer demo.

Drives the forecasting pipeline with a background tick scheduler for a
few loops, prints the decision history and saves the final diagram as
``pipeline_demo.png``.
"""

from __future__ import annotations

import time

import matplotlib.pyplot as plt
import numpy as np

from ..i18n.locale import LocaleProvider
from ..logs import configure_logging
from ..simulation.engine import SequencerEngine
from ..simulation.pipeline import forecasting_pipeline
from ..simulation.scheduler import PlaybackController
from ..visualization.renderer import DiagramRenderer


def run_loops(
    controller: PlaybackController,
    loops: int,
    poll: float = 0.01,
    timeout: float = 30.0,
) -> None:
    """Play *loops* complete passes, continuing each finished run."""
    controller.play()
    deadline = time.monotonic() + timeout
    for done in range(loops):
        while not controller.engine.is_complete or controller.state.is_running:
            if time.monotonic() > deadline:
                raise TimeoutError(f"run stalled after {done} loops")
            time.sleep(poll)
        if done < loops - 1:
            controller.next_iteration()


def main() -> None:
    configure_logging("INFO")
    engine = SequencerEngine(
        forecasting_pipeline(), epsilon=0.4, rng=np.random.default_rng(42)
    )

    # 20 ms ticks instead of the UI's 2.5 s
    with PlaybackController(engine, interval=0.02) as controller:
        run_loops(controller, loops=8)

    print(engine.history_frame().to_string(index=False))

    renderer = DiagramRenderer(engine, LocaleProvider("en"))
    renderer.render_snapshot(title="Forecasting pipeline — final state")
    plt.tight_layout()
    plt.savefig("pipeline_demo.png", dpi=150)
    plt.show()


if __name__ == "__main__":
    main()
