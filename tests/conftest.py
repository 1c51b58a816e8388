"""Shared fixtures for kestrel-fsm tests."""

import logging

import pytest

from kestrel_fsm.core.settings import FSMSettings
from kestrel_fsm.fsm.example import build_traffic_light
from kestrel_fsm.fsm.machine import StateMachine
from kestrel_fsm.fsm.models import Context


@pytest.fixture
def traffic_light() -> StateMachine:
    """Traffic-light machine: GREEN, YELLOW, BOUNCE, RED, EXIT."""
    return build_traffic_light()


@pytest.fixture
def render_settings() -> FSMSettings:
    """Rendering settings pinned to defaults, independent of the environment."""
    return FSMSettings(
        graph_name="finite_state_machine",
        graph_rankdir="LR",
        graph_highlight_color="lightblue",
        render_dynamic_fallbacks=False,
    )


@pytest.fixture
def calls() -> list[str]:
    """Ordered log of callback invocations."""
    return []


@pytest.fixture
def traced_machine(calls: list[str]) -> StateMachine:
    """Machine A -> B on "go", A -> A on "stay", every hook appending to ``calls``."""

    def hook(label: str):
        def _hook(ctx: Context) -> None:
            calls.append(label)

        return _hook

    sm = StateMachine("traced")
    a = sm.add_state("A", on_enter=hook("A.enter"), on_event=hook("A.event"), on_exit=hook("A.exit"))
    b = sm.add_state("B", on_enter=hook("B.enter"), on_event=hook("B.event"), on_exit=hook("B.exit"))
    a.add_transition("go", b)
    a.add_transition("stay", a)
    b.add_transition("back", a)
    sm.add_transition_listener(lambda ctx: calls.append(f"notify:{ctx.from_state.name}->{ctx.to_state.name}"))
    return sm


@pytest.fixture
def restore_root_logging():
    """Restore root logger handlers and level changed by setup_logging()."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
