"""Tests for StateMachine, StateMachineInstance and the dispatch engine."""

import logging

import pytest

from kestrel_fsm.core.result import Err, FSMError, Ok, StateNotFound, TransitionNotFound
from kestrel_fsm.fsm.machine import StateMachine, StateMachineInstance
from kestrel_fsm.fsm.models import Context, Event, Phase
from kestrel_fsm.fsm.state import State


class TestDefinition:
    """Tests for building a machine definition."""

    def test_add_state_by_name_returns_state(self):
        sm = StateMachine("m")
        state = sm.add_state("A")
        assert isinstance(state, State)
        assert sm.states == {"A": state}

    def test_add_state_object(self):
        sm = StateMachine("m")
        state = State("A")
        assert sm.add_state(state) is state
        assert sm.get_state("A") is state

    def test_add_state_object_with_callbacks(self):
        sm = StateMachine("m")
        hook = lambda ctx: None  # noqa: E731
        state = sm.add_state(State("A"), on_enter=hook)
        assert state.on_enter is hook

    def test_readding_name_overwrites(self):
        sm = StateMachine("m")
        first = sm.add_state("A")
        second = sm.add_state("A")
        assert first is not second
        assert sm.get_state("A") is second
        assert len(sm.states) == 1

    def test_states_keep_insertion_order(self):
        sm = StateMachine("m")
        for name in ("C", "A", "B"):
            sm.add_state(name)
        assert list(sm.states) == ["C", "A", "B"]

    def test_state_by_name(self):
        sm = StateMachine("m")
        a = sm.add_state("A")
        assert sm.state_by_name("A") == Ok(a)

    def test_state_by_name_not_found(self):
        sm = StateMachine("m")
        result = sm.state_by_name("NOPE")
        assert isinstance(result, StateNotFound)
        assert result.name == "NOPE"
        assert sm.get_state("NOPE") is None

    def test_name_and_str(self):
        sm = StateMachine("SimpleTransition")
        assert sm.name == "SimpleTransition"
        assert str(sm) == "SimpleTransition"


class TestInstantiation:
    """Tests for creating instances (teleports)."""

    def test_from_state_runs_no_callbacks(self, traced_machine, calls):
        smi = traced_machine.from_state(traced_machine.get_state("B"))
        assert smi.state.name == "B"
        assert calls == []

    def test_from_state_name(self, traced_machine, calls):
        result = traced_machine.from_state_name("A")
        assert result.is_ok()
        smi = result.unwrap()
        assert isinstance(smi, StateMachineInstance)
        assert smi.state is traced_machine.get_state("A")
        assert smi.machine is traced_machine
        assert calls == []

    def test_from_state_name_not_found(self, traced_machine):
        result = traced_machine.from_state_name("Z")
        assert result.is_err()
        assert result.code == "STATE_NOT_FOUND"
        assert result.name == "Z"

    def test_from_state_name_unwrap_raises(self, traced_machine):
        with pytest.raises(FSMError):
            traced_machine.from_state_name("Z").unwrap()

    def test_set_current_state_runs_no_callbacks(self, traced_machine, calls):
        smi = traced_machine.from_state_name("A").unwrap()
        smi.set_current_state(traced_machine.get_state("B"))
        assert smi.state.name == "B"
        assert calls == []

    def test_instances_are_independent(self, traced_machine):
        first = traced_machine.from_state_name("A").unwrap()
        second = traced_machine.from_state_name("A").unwrap()
        first.fire("go")
        assert first.state.name == "B"
        assert second.state.name == "A"


class TestFiringOrder:
    """Tests for the exit -> enter -> event -> notify ordering."""

    def test_exit_enter_event_notify_order(self, traced_machine, calls):
        """A -> B records [A.exit, B.enter, B.event, notify] exactly once."""
        smi = traced_machine.from_state_name("A").unwrap()

        result = smi.fire("go")

        assert result == Ok(traced_machine.get_state("B"))
        assert calls == ["A.exit", "B.enter", "B.event", "notify:A->B"]

    def test_self_transition_skips_enter_and_exit(self, traced_machine, calls):
        """A -> A only runs on-event and the listener."""
        smi = traced_machine.from_state_name("A").unwrap()

        smi.fire("stay")

        assert smi.state.name == "A"
        assert calls == ["A.event", "notify:A->A"]

    def test_determinism(self, traced_machine, calls):
        """Same definition, state and event give the same target and sequence."""
        sequences = []
        for _ in range(3):
            calls.clear()
            smi = traced_machine.from_state_name("A").unwrap()
            target = smi.fire("go").unwrap()
            sequences.append((target, list(calls)))

        assert sequences[0] == sequences[1] == sequences[2]

    def test_callbacks_see_phase_and_states(self):
        seen = []

        def record(ctx: Context) -> None:
            seen.append((ctx.phase, ctx.from_state.name, ctx.to_state.name, ctx.key))

        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=record)
        b = sm.add_state("B", on_enter=record, on_event=record)
        a.add_transition("go", b)
        sm.add_transition_listener(record)

        sm.from_state(a).fire("go")

        assert seen == [
            (Phase.EXIT, "A", "B", "go"),
            (Phase.ENTER, "A", "B", "go"),
            (Phase.EVENT, "A", "B", "go"),
            (Phase.NOTIFY, "A", "B", "go"),
        ]

    def test_event_from_state_is_set(self):
        seen = []
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_event=lambda ctx: seen.append(ctx.event.from_state))
        a.add_transition("go", b)

        sm.from_state(a).fire("go")

        assert seen == [a]

    def test_state_committed_after_event_callback(self):
        """Inside callbacks the instance has not moved yet; listeners see the new state."""
        observed = {}
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_event=lambda ctx: observed.setdefault("event", smi.state.name))
        a.add_transition("go", b)
        sm.add_transition_listener(lambda ctx: observed.setdefault("listener", smi.state.name))
        smi = sm.from_state(a)

        smi.fire("go")

        assert observed == {"event": "A", "listener": "B"}


class TestPayload:
    """Tests for event payloads."""

    def test_payload_visible_to_all_callbacks(self):
        seen = []
        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=lambda ctx: seen.append(("exit", ctx.data)))
        b = sm.add_state(
            "B",
            on_enter=lambda ctx: seen.append(("enter", ctx.data)),
            on_event=lambda ctx: seen.append(("event", ctx.data)),
        )
        a.add_transition("go", b)
        sm.add_transition_listener(lambda ctx: seen.append(("notify", ctx.data)))

        sm.from_state(a).fire("go", {"speed": 3})

        assert seen == [
            ("exit", {"speed": 3}),
            ("enter", {"speed": 3}),
            ("event", {"speed": 3}),
            ("notify", {"speed": 3}),
        ]

    def test_fire_event_object(self):
        seen = []
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_event=lambda ctx: seen.append(ctx.data))
        a.add_transition("go", b)

        sm.from_state(a).fire(Event("go", data=42))

        assert seen == [42]

    def test_non_string_keys(self):
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B")
        a.add_transition(("door", 1), b)
        smi = sm.from_state(a)

        assert smi.fire(("door", 1)).is_ok()
        assert smi.state is b


class TestUnresolvedEvents:
    """Tests for TransitionNotFound."""

    def test_unresolvable_event_leaves_state_unchanged(self, traced_machine, calls):
        smi = traced_machine.from_state_name("A").unwrap()

        result = smi.fire("HONK")

        assert isinstance(result, TransitionNotFound)
        assert result.state_name == "A"
        assert result.key == "HONK"
        assert smi.state.name == "A"
        assert calls == []

    def test_unresolvable_event_is_logged(self, traced_machine, caplog):
        smi = traced_machine.from_state_name("A").unwrap()
        with caplog.at_level(logging.WARNING, logger="kestrel_fsm.fsm.machine"):
            smi.fire("HONK")
        assert "HONK" in caplog.text


class TestCallbackFailures:
    """Tests for failures raised inside callbacks."""

    def _machine(self, calls, fail_on):
        def hook(label):
            def _hook(ctx):
                calls.append(label)
                if label == fail_on:
                    return Err(f"{label} failed", code="HOOK_FAILED")
                return None

            return _hook

        sm = StateMachine("failing")
        a = sm.add_state("A", on_exit=hook("A.exit"))
        b = sm.add_state("B", on_enter=hook("B.enter"), on_event=hook("B.event"))
        a.add_transition("go", b)
        sm.add_transition_listener(lambda ctx: calls.append("notify"))
        return sm

    def test_exit_failure_aborts_before_enter(self, calls):
        sm = self._machine(calls, "A.exit")
        smi = sm.from_state_name("A").unwrap()

        result = smi.fire("go")

        assert result == Err("A.exit failed", code="HOOK_FAILED")
        assert smi.state.name == "A"
        assert calls == ["A.exit"]

    def test_enter_failure_keeps_state_after_exit_ran(self, calls):
        sm = self._machine(calls, "B.enter")
        smi = sm.from_state_name("A").unwrap()

        result = smi.fire("go")

        assert result.code == "HOOK_FAILED"
        assert smi.state.name == "A"
        assert calls == ["A.exit", "B.enter"]

    def test_event_failure_prevents_commit(self, calls):
        sm = self._machine(calls, "B.event")
        smi = sm.from_state_name("A").unwrap()

        result = smi.fire("go")

        assert result.code == "HOOK_FAILED"
        assert smi.state.name == "A"
        assert calls == ["A.exit", "B.enter", "B.event"]

    def test_err_is_returned_verbatim(self):
        err = Err("payment declined", code="PAYMENT")
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_enter=lambda ctx: err)
        a.add_transition("go", b)

        assert sm.from_state(a).fire("go") is err

    def test_exception_is_wrapped(self, caplog):
        boom = RuntimeError("boom")

        def explode(ctx):
            raise boom

        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=explode)
        b = sm.add_state("B")
        a.add_transition("go", b)
        smi = sm.from_state(a)

        with caplog.at_level(logging.ERROR, logger="kestrel_fsm.fsm.machine"):
            result = smi.fire("go")

        assert result.code == "CALLBACK_ERROR"
        assert result.details["exception"] is boom
        assert result.details["phase"] == "exit"
        assert result.details["state"] == "A"
        assert smi.state is a
        assert "boom" in caplog.text

    def test_ok_and_other_return_values_mean_success(self):
        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=lambda ctx: Ok(None))
        b = sm.add_state("B", on_enter=lambda ctx: True, on_event=lambda ctx: "ignored")
        a.add_transition("go", b)
        smi = sm.from_state(a)

        assert smi.fire("go").is_ok()
        assert smi.state is b

    def test_listener_failure_does_not_fail_transition(self):
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B")
        a.add_transition("go", b)

        def broken(ctx):
            raise RuntimeError("listener")

        sm.add_transition_listener(broken)
        smi = sm.from_state(a)

        assert smi.fire("go") == Ok(b)
        assert smi.state is b


class TestReentrancy:
    """Tests for nested fire() calls."""

    def test_nested_fire_from_enter_is_invalid(self):
        nested = []
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_enter=lambda ctx: nested.append(smi.fire("back")))
        c = sm.add_state("C")
        a.add_transition("go", b)
        b.add_transition("back", c)
        smi = sm.from_state(a)

        result = smi.fire("go")

        assert result.is_ok()
        assert smi.state is b
        assert nested[0].code == "INVALID_CALL_SITE"

    def test_nested_fire_error_can_abort_episode(self):
        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=lambda ctx: smi.fire("again"))
        b = sm.add_state("B")
        a.add_transition("go", b)
        a.add_transition("again", b)
        smi = sm.from_state(a)

        result = smi.fire("go")

        assert result.code == "INVALID_CALL_SITE"
        assert smi.state is a

    def test_ctx_fire_from_enter_is_invalid(self):
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_enter=lambda ctx: ctx.fire("next"))
        c = sm.add_state("C")
        a.add_transition("go", b)
        b.add_transition("next", c)
        smi = sm.from_state(a)

        result = smi.fire("go")

        assert result.code == "INVALID_CALL_SITE"
        assert result.details["phase"] == "enter"
        assert smi.state is a

    def test_event_returned_from_exit_is_invalid(self):
        sm = StateMachine("m")
        a = sm.add_state("A", on_exit=lambda ctx: Event("next"))
        b = sm.add_state("B")
        a.add_transition("go", b)
        smi = sm.from_state(a)

        result = smi.fire("go")

        assert result.code == "INVALID_CALL_SITE"
        assert smi.state is a

    def test_is_firing(self):
        flags = []
        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_event=lambda ctx: flags.append(smi.is_firing))
        a.add_transition("go", b)
        smi = sm.from_state(a)

        smi.fire("go")

        assert flags == [True]
        assert smi.is_firing is False

    def test_is_firing_reset_after_error(self):
        sm = StateMachine("m")
        a = sm.add_state("A")
        smi = sm.from_state(a)
        smi.fire("missing")
        assert smi.is_firing is False

    def test_sibling_instance_may_fire_from_callback(self):
        sibling_results = []

        def drive_sibling(ctx):
            if ctx.data == "outer":
                sibling_results.append(other.fire("go", "inner"))

        sm = StateMachine("m")
        a = sm.add_state("A")
        b = sm.add_state("B", on_event=drive_sibling)
        a.add_transition("go", b)
        smi = sm.from_state(a)
        other = sm.from_state(a)

        assert smi.fire("go", "outer").is_ok()
        assert smi.state is b
        assert sibling_results[0].is_ok()
        assert other.state is b


class TestTrafficLight:
    """The GREEN/YELLOW/BOUNCE/RED/EXIT scenario."""

    def test_tick_tick_lands_on_red(self, traffic_light):
        smi = traffic_light.from_state_name("GREEN").unwrap()

        smi.fire("TICK")
        assert smi.state.name == "YELLOW"

        result = smi.fire("TICK")
        assert result.is_ok()
        assert smi.state.name == "RED"
        assert result.unwrap() is smi.state

    def test_loop_on_red_only_runs_event(self, traffic_light):
        counts = {"enter": 0, "exit": 0, "event": 0}
        red = traffic_light.get_state("RED")
        red.on_enter = lambda ctx: counts.__setitem__("enter", counts["enter"] + 1)
        red.on_exit = lambda ctx: counts.__setitem__("exit", counts["exit"] + 1)
        red.on_event = lambda ctx: counts.__setitem__("event", counts["event"] + 1)
        smi = traffic_light.from_state_name("GREEN").unwrap()

        smi.fire("TICK")
        smi.fire("TICK")
        assert counts == {"enter": 1, "exit": 0, "event": 1}

        smi.fire("LOOP")
        smi.fire("LOOP")
        assert smi.state.name == "RED"
        assert counts == {"enter": 1, "exit": 0, "event": 3}

        smi.fire("TICK")
        assert smi.state.name == "GREEN"
        assert counts == {"enter": 1, "exit": 1, "event": 3}

    def test_unmapped_key_from_yellow_falls_back_to_exit(self, traffic_light):
        smi = traffic_light.from_state_name("YELLOW").unwrap()

        result = smi.fire("HONK")

        assert result.is_ok()
        assert smi.state.name == "EXIT"

    def test_unmapped_key_from_green_is_not_found(self, traffic_light):
        smi = traffic_light.from_state_name("GREEN").unwrap()

        result = smi.fire("HONK")

        assert result.code == "TRANSITION_NOT_FOUND"
        assert smi.state.name == "GREEN"

    def test_fallback_state_added_between_episodes(self, traffic_light):
        """A FALLBACK state can be appended after firing has started."""
        smi = traffic_light.from_state_name("GREEN").unwrap()
        assert smi.fire("HONK").is_err()

        fallback = traffic_light.add_state("FALLBACK")
        traffic_light.set_fallback(fallback)

        assert smi.fire("HONK").is_ok()
        assert smi.state is fallback
