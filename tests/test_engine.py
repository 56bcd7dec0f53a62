"""Tests for the sequencer engine and its epsilon-greedy policy."""

from __future__ import annotations

from dataclasses import replace

import pytest

from epsilon_pipeline.core.state import EngineState
from epsilon_pipeline.simulation.engine import HISTORY_COLUMNS, SequencerEngine

from conftest import finish_loops, run_to


def _is_default(state: EngineState) -> bool:
    return (
        state.step == 0
        and not state.is_running
        and state.is_warmup
        and state.iteration_count == 1
        and state.random_draw == 0.5
        and state.selected_stage_id is None
    )


class TestConstruction:
    def test_defaults(self, engine):
        assert _is_default(engine.state)
        assert engine.state.epsilon == 0.4
        assert engine.step_count == 10

    @pytest.mark.parametrize("epsilon", [0.0, 1.0, -0.1, 1.5])
    def test_epsilon_out_of_range(self, topology, epsilon):
        with pytest.raises(ValueError):
            SequencerEngine(topology, epsilon)

    def test_default_rng(self, topology):
        engine = SequencerEngine(topology)
        run_to(engine, 2)
        assert 0.0 <= engine.state.random_draw < 1.0


class TestControls:
    def test_tick_while_paused_is_noop(self, engine):
        before = engine.state
        for _ in range(5):
            engine.tick()
        assert engine.state is before
        assert engine.state.step == 0

    def test_tick_advances_one_step(self, engine):
        engine.start()
        state = engine.tick()
        assert state.step == 1
        assert state is engine.state

    def test_start_is_idempotent(self, engine):
        first = engine.start()
        second = engine.start()
        assert first is second
        assert second.is_running

    def test_pause_only_stops(self, engine):
        run_to(engine, 4)
        before = engine.state
        after = engine.pause()
        assert not after.is_running
        assert replace(after, is_running=True) == before

    def test_paused_engine_ignores_ticks(self, engine):
        run_to(engine, 3)
        engine.pause()
        engine.tick()
        assert engine.state.step == 3

    def test_auto_stop_at_completion(self, engine):
        engine.start()
        for _ in range(engine.step_count + 1):
            engine.tick()
        assert engine.state.step == engine.step_count
        assert not engine.state.is_running

        done = engine.state
        for _ in range(3):
            engine.tick()
        assert engine.state is done

    def test_does_not_loop_on_its_own(self, engine):
        engine.start()
        engine.run(engine.step_count)
        assert engine.state.step == engine.step_count
        assert engine.state.is_running
        engine.tick()
        assert engine.state.step == engine.step_count
        assert not engine.state.is_running

    def test_start_after_completion_restarts(self, make_engine):
        engine = make_engine(0.9)
        finish_loops(engine, 5)
        engine.tick()  # auto-stop
        assert not engine.state.is_warmup

        state = engine.start()
        assert state.step == 0
        assert state.iteration_count == 1
        assert state.is_warmup
        assert state.is_running

    def test_reset_from_any_state(self, make_engine):
        engine = make_engine(0.9)
        finish_loops(engine, 5)
        engine.select_stage("history")
        state = engine.reset()
        assert _is_default(state)
        assert not state.is_exploring
        assert engine.history == []

    def test_reset_while_running_stops(self, engine):
        run_to(engine, 6)
        assert engine.state.is_running
        assert not engine.reset().is_running


class TestEpsilonGreedy:
    def test_draw_happens_entering_decision(self, make_engine):
        engine = make_engine(0.123)
        run_to(engine, 1)
        assert engine.state.random_draw == 0.5
        engine.tick()
        assert engine.state.random_draw == 0.123
        assert engine.rng.calls == 1

    def test_one_draw_per_loop(self, make_engine):
        engine = make_engine(0.2, 0.7, 0.3)
        finish_loops(engine, 3)
        assert engine.rng.calls == 3
        assert [r.random_draw for r in engine.history] == [0.2, 0.7, 0.3]

    def test_warmup_forces_exploration(self, make_engine):
        engine = make_engine(0.99)
        run_to(engine, 2)
        assert engine.state.is_warmup
        assert engine.state.random_draw == 0.99
        assert engine.state.is_exploring

    def test_warmup_always_explores(self, make_engine):
        engine = make_engine(0.95, 0.8, 0.6, 0.99)
        finish_loops(engine, 4)
        assert all(r.is_warmup and r.is_exploring for r in engine.history)

    def test_low_draw_explores_after_warmup(self, make_engine):
        engine = make_engine(0.9, 0.9, 0.9, 0.9, 0.1, epsilon=0.4)
        finish_loops(engine, 4)
        assert not engine.state.is_warmup
        engine.next_iteration()
        engine.tick()
        assert engine.state.step == 2
        assert engine.state.random_draw == 0.1
        assert engine.state.is_exploring

    def test_high_draw_exploits_after_warmup(self, make_engine):
        engine = make_engine(0.1, 0.1, 0.1, 0.1, 0.8, epsilon=0.4)
        finish_loops(engine, 4)
        engine.next_iteration()
        engine.tick()
        assert engine.state.random_draw == 0.8
        assert not engine.state.is_exploring

    def test_draw_equal_to_epsilon_exploits(self, make_engine):
        engine = make_engine(0.4, 0.4, 0.4, 0.4, 0.4, epsilon=0.4)
        finish_loops(engine, 5)
        assert not engine.history[-1].is_exploring

    def test_after_warmup_matches_comparison(self, make_engine):
        draws = [0.5] * 4 + [0.05, 0.95, 0.39, 0.41, 0.0]
        engine = make_engine(*draws, epsilon=0.4)
        finish_loops(engine, len(draws))
        for record in engine.history[4:]:
            assert not record.is_warmup
            assert record.is_exploring == (record.random_draw < 0.4)


class TestWarmupTransition:
    def test_iteration_counted_entering_check(self, engine):
        run_to(engine, 7)
        assert engine.state.iteration_count == 1
        engine.tick()
        assert engine.state.step == 8
        assert engine.state.iteration_count == 2

    def test_warmup_ends_on_fourth_check(self, engine):
        seen: list[tuple[int, bool]] = []

        def on_change(state: EngineState) -> None:
            if state.step == 8:
                seen.append((state.iteration_count, state.is_warmup))

        engine.subscribe(on_change)
        finish_loops(engine, 5)
        # (count after increment, warmup) each time step 8 is reached
        assert seen == [(2, True), (3, True), (4, True), (5, False), (6, False)]
        assert not engine.state.is_warmup

    def test_warmup_stays_off_until_reset(self, engine):
        finish_loops(engine, 7)
        assert not engine.state.is_warmup
        assert engine.state.iteration_count == 8
        assert engine.reset().is_warmup

    def test_custom_warmup_threshold(self, make_engine):
        engine = make_engine(0.5, warmup_iterations=1)
        finish_loops(engine, 2)
        assert not engine.state.is_warmup


class TestNextIteration:
    def test_noop_before_completion(self, engine):
        run_to(engine, 5)
        before = engine.state
        assert engine.next_iteration() is before

    def test_resumes_at_loop_entry(self, make_engine):
        engine = make_engine(0.3)
        finish_loops(engine, 1)
        engine.tick()  # auto-stop
        state = engine.next_iteration()
        assert state.step == 1
        assert state.is_running
        assert state.iteration_count == 2
        assert state.random_draw == 0.3


class TestSelection:
    def test_select_twice_clears(self, engine):
        engine.select_stage("decision")
        assert engine.state.selected_stage_id == "decision"
        engine.select_stage("decision")
        assert engine.state.selected_stage_id is None

    def test_select_other_switches(self, engine):
        engine.select_stage("decision")
        engine.select_stage("history")
        assert engine.state.selected_stage_id == "history"

    def test_select_none_clears(self, engine):
        engine.select_stage("update")
        engine.select_stage(None)
        assert engine.state.selected_stage_id is None

    def test_selection_does_not_touch_simulation(self, engine):
        run_to(engine, 3)
        before = engine.state
        after = engine.select_stage("embedder")
        assert replace(after, selected_stage_id=None) == before


class TestActivation:
    def test_initial_activation(self, engine):
        act = engine.derive_activation()
        assert act.stages["database"]
        assert not any(v for k, v in act.stages.items() if k != "database")
        assert not any(act.edges.values())

    def test_monotonic_within_run(self, make_engine):
        for draw in (0.1, 0.9):
            engine = make_engine(draw)
            engine.start()
            seen_active: set[str] = set()
            while engine.state.is_running:
                act = engine.derive_activation()
                now_active = {k for k, v in act.stages.items() if v}
                assert seen_active <= now_active
                seen_active = now_active
                engine.tick()

    @pytest.mark.parametrize("exploring", [True, False])
    def test_exactly_one_branch(self, engine, exploring):
        for step in range(3, engine.step_count + 1):
            state = EngineState(epsilon=0.4, step=step, is_exploring=exploring)
            act = engine.derive_activation(state)
            assert act.stages["random-picker"] is exploring
            assert act.stages["introspector"] is not exploring

    def test_no_branch_before_split(self, engine):
        state = EngineState(epsilon=0.4, step=2, is_exploring=True)
        act = engine.derive_activation(state)
        assert not act.stages["random-picker"]
        assert not act.stages["introspector"]

    def test_branch_edges_follow_decision(self, engine):
        explore = engine.derive_activation(
            EngineState(epsilon=0.4, step=4, is_exploring=True)
        )
        assert explore.edges["decision->random-picker"]
        assert not explore.edges["decision->introspector"]
        assert explore.edges["random-picker->selected-vars"]
        assert not explore.edges["introspector->selected-vars"]

        exploit = engine.derive_activation(
            EngineState(epsilon=0.4, step=4, is_exploring=False)
        )
        assert exploit.edges["decision->introspector"]
        assert not exploit.edges["decision->random-picker"]

    def test_iteration_check_edges(self, engine):
        at_check = engine.derive_activation(EngineState(epsilon=0.4, step=8))
        assert at_check.edges["iteration-check->warmup-note"]
        assert not at_check.edges["iteration-check->update"]

        at_update = engine.derive_activation(EngineState(epsilon=0.4, step=9))
        assert not at_update.edges["iteration-check->warmup-note"]
        assert at_update.edges["iteration-check->update"]
        assert at_update.edges["update->warmup-note"]

    def test_everything_on_path_active_at_completion(self, engine):
        act = engine.derive_activation(EngineState(epsilon=0.4, step=10))
        inactive = {k for k, v in act.stages.items() if not v}
        assert inactive == {"random-picker"}

    def test_derive_is_pure(self, engine):
        before = engine.state
        engine.derive_activation(EngineState(epsilon=0.4, step=7))
        assert engine.state is before

    def test_is_active_lookup(self, engine):
        act = engine.derive_activation(EngineState(epsilon=0.4, step=1))
        assert act.is_active("warmup-note")
        assert act.is_active("database->warmup-note")
        assert not act.is_active("missing")


class TestObserversAndHistory:
    def test_listeners_get_every_change(self, engine):
        received: list[EngineState] = []
        engine.subscribe(received.append)
        engine.start()
        engine.tick()
        engine.select_stage("database")
        engine.pause()
        engine.reset()
        assert [s.step for s in received] == [0, 1, 1, 1, 0]
        assert received[-1] is engine.state

    def test_unsubscribe(self, engine):
        received: list[EngineState] = []
        unsubscribe = engine.subscribe(received.append)
        unsubscribe()
        engine.start()
        assert received == []

    def test_history_frame(self, make_engine):
        engine = make_engine(0.2, 0.6)
        assert list(engine.history_frame().columns) == HISTORY_COLUMNS
        assert engine.history_frame().empty

        finish_loops(engine, 2)
        frame = engine.history_frame()
        assert list(frame["iteration"]) == [1, 2]
        assert list(frame["random_draw"]) == [0.2, 0.6]
        assert frame["is_exploring"].all()
