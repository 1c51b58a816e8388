"""Finite state machine engine.

States hold keyed transitions, an optional fallback and enter/event/exit
callbacks. A StateMachine is the shared definition; a StateMachineInstance
is a live machine with a current state.

Firing an event runs exit -> enter -> event -> commit -> notify, then
follows any event chained from the on-event callback.

Visualization:
    StateMachine.render() returns Graphviz DOT text for the dot tool:
        Path("fsm.dot").write_text(sm.render())
"""

from kestrel_fsm.fsm.models import (
    Context,
    Event,
    Fallback,
    FallbackKind,
    Phase,
    TransitionRecord,
)
from kestrel_fsm.fsm.state import State
from kestrel_fsm.fsm.machine import StateMachine, StateMachineInstance
from kestrel_fsm.fsm.builder import FSMBuilder
from kestrel_fsm.fsm.dot import render
from kestrel_fsm.fsm.loggers import JsonLogger, LoggingListener

__all__ = [
    # Models
    "Context",
    "Event",
    "Fallback",
    "FallbackKind",
    "Phase",
    "TransitionRecord",
    # Engine
    "State",
    "StateMachine",
    "StateMachineInstance",
    "FSMBuilder",
    # Rendering
    "render",
    # Loggers
    "JsonLogger",
    "LoggingListener",
]
