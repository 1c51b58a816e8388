"""kestrel-fsm - Core module exports"""

from .result import Err, FSMError, Ok, Result, StateNotFound, TransitionNotFound
from .observer import ListenerRegistry, TransitionListener, TransitionRecorder
from .settings import FSMSettings, get_settings, reload_settings

__all__ = [
    # Results
    "Result",
    "Ok",
    "Err",
    "FSMError",
    "StateNotFound",
    "TransitionNotFound",
    # Observer
    "TransitionListener",
    "ListenerRegistry",
    "TransitionRecorder",
    # Settings
    "FSMSettings",
    "get_settings",
    "reload_settings",
]
