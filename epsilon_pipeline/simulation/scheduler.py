"""Interval scheduling and single-writer playback control."""

from __future__ import annotations

import threading
from typing import Callable

from loguru import logger

from ..core.state import EngineState
from .engine import SequencerEngine

DEFAULT_INTERVAL = 2.5


class TickScheduler:
    """Fires a tick callback every *interval* seconds on a background thread.

    The scheduler stops on its own once a tick reports ``is_running=False``
    (the engine auto-stops at completion), or when :meth:`cancel` is called.
    Use it as a context manager to make sure the thread never outlives its
    owner.
    """

    def __init__(
        self,
        callback: Callable[[], EngineState],
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.callback = callback
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def is_current(self) -> bool:
        """True when called from this scheduler's own thread."""
        return self._thread is threading.current_thread()

    def start(self) -> None:
        if self.active:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="tick-scheduler", daemon=True
        )
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            state = self.fire()
            if not state.is_running:
                logger.debug("Scheduler idle at step {}", state.step)
                break

    def fire(self) -> EngineState:
        """Invoke the tick callback once, synchronously."""
        return self.callback()

    def cancel(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def __enter__(self) -> TickScheduler:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.cancel()


class PlaybackController:
    """Owns one engine and serialises every mutating call on it.

    With an *interval* the controller drives the engine through its own
    :class:`TickScheduler`; without one, an external driver (a Dash
    ``dcc.Interval``, a test) calls :meth:`tick` itself.  Pausing,
    resetting and closing always release the scheduler.
    """

    def __init__(
        self,
        engine: SequencerEngine,
        interval: float | None = None,
    ) -> None:
        self.engine = engine
        self.interval = interval
        self._lock = threading.RLock()
        self._scheduler: TickScheduler | None = None

    @property
    def state(self) -> EngineState:
        return self.engine.state

    @property
    def scheduled(self) -> bool:
        return self._scheduler is not None and self._scheduler.active

    # ── Scheduler handle ─────────────────────────────────────────────

    def _ensure_scheduler(self) -> None:
        if self.interval is None or self._scheduler is not None:
            return
        self._scheduler = TickScheduler(self._scheduled_tick, self.interval)
        self._scheduler.start()

    def _scheduled_tick(self) -> EngineState:
        with self._lock:
            state = self.engine.tick()
            scheduler = self._scheduler
            # Finished schedulers detach under the lock; play() then starts a new one.
            if not state.is_running and scheduler is not None and scheduler.is_current():
                self._scheduler = None
            return state

    def _detach_scheduler(self) -> TickScheduler | None:
        scheduler, self._scheduler = self._scheduler, None
        return scheduler

    # ── Control surface ──────────────────────────────────────────────

    def play(self) -> EngineState:
        with self._lock:
            state = self.engine.start()
            self._ensure_scheduler()
            return state

    def pause(self) -> EngineState:
        with self._lock:
            scheduler = self._detach_scheduler()
            state = self.engine.pause()
        # Joined outside the lock: the thread may be waiting on it to tick.
        if scheduler is not None:
            scheduler.cancel()
        return state

    def toggle(self) -> EngineState:
        if self.state.is_running:
            return self.pause()
        return self.play()

    def reset(self) -> EngineState:
        with self._lock:
            scheduler = self._detach_scheduler()
            state = self.engine.reset()
        if scheduler is not None:
            scheduler.cancel()
        return state

    def tick(self) -> EngineState:
        with self._lock:
            return self.engine.tick()

    def next_iteration(self) -> EngineState:
        with self._lock:
            state = self.engine.next_iteration()
            if state.is_running:
                self._ensure_scheduler()
            return state

    def select_stage(self, stage_id: str | None) -> EngineState:
        with self._lock:
            return self.engine.select_stage(stage_id)

    def close(self) -> None:
        with self._lock:
            scheduler = self._detach_scheduler()
        if scheduler is not None:
            scheduler.cancel()

    def __enter__(self) -> PlaybackController:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
