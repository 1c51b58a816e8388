"""kestrel-fsm - Embeddable finite state machine engine.

Example:
    from kestrel_fsm import StateMachine

    sm = StateMachine("door")
    closed = sm.add_state("closed")
    opened = sm.add_state("opened", on_enter=lambda ctx: print("creak"))
    closed.add_transition("open", opened)
    opened.add_transition("close", closed)

    door = sm.from_state(closed)
    result = door.fire("open")
    if result.is_ok():
        print(door.state.name)
"""

from kestrel_fsm.core.observer import ListenerRegistry, TransitionListener, TransitionRecorder
from kestrel_fsm.core.result import (
    Err,
    FSMError,
    Ok,
    Result,
    StateNotFound,
    TransitionNotFound,
)
from kestrel_fsm.core.settings import FSMSettings, get_settings, reload_settings
from kestrel_fsm.fsm.builder import FSMBuilder
from kestrel_fsm.fsm.loggers import JsonLogger, LoggingListener
from kestrel_fsm.fsm.machine import StateMachine, StateMachineInstance
from kestrel_fsm.fsm.models import Context, Event, Fallback, FallbackKind, Phase, TransitionRecord
from kestrel_fsm.fsm.state import State

__version__ = "0.1.0"

__all__ = [
    # Engine
    "State",
    "StateMachine",
    "StateMachineInstance",
    "FSMBuilder",
    # Models
    "Context",
    "Event",
    "Fallback",
    "FallbackKind",
    "Phase",
    "TransitionRecord",
    # Results
    "Result",
    "Ok",
    "Err",
    "FSMError",
    "StateNotFound",
    "TransitionNotFound",
    # Listeners
    "TransitionListener",
    "ListenerRegistry",
    "TransitionRecorder",
    "LoggingListener",
    "JsonLogger",
    # Settings
    "FSMSettings",
    "get_settings",
    "reload_settings",
]
