"""Observer pattern for transition notification.

Transition listeners are post-commit observers: they are told about a
transition after the new state has been committed and can never influence
it. A listener is either a plain callable taking the firing context, or an
object implementing the TransitionListener protocol.

Key concepts:
- TransitionListener: Protocol for objects that receive notifications
- ListenerRegistry: Ordered listener list with fault-isolated notification
- TransitionRecorder: Concrete listener that records completed transitions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Hashable, Optional, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from kestrel_fsm.fsm.models import Context


logger = logging.getLogger(__name__)


@runtime_checkable
class TransitionListener(Protocol):
    """Protocol for transition listeners.

    Listeners receive the completed firing context (from state, to state,
    event key and payload) once per committed transition.
    """

    def on_transition(self, ctx: Context) -> None:
        """Handle a completed transition.

        Args:
            ctx: Context of the transition that was just committed.
        """
        ...


ListenerLike = Union[TransitionListener, Callable[["Context"], Any]]


class ListenerRegistry:
    """Ordered registry of transition listeners.

    Listeners are notified in registration order. There is no removal API.
    A listener that raises is logged and skipped; the remaining listeners
    are still notified and the transition result is unaffected.

    Thread safety: NOT thread-safe. Register listeners during construction.

    Args:
        name: Name of the owner (used in log messages).
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Callable[[Context], Any]] = []

    def add(self, listener: ListenerLike) -> None:
        """Append a listener.

        Args:
            listener: Callable taking the context, or a TransitionListener.

        Raises:
            TypeError: If listener is neither callable nor a TransitionListener.
        """
        if isinstance(listener, TransitionListener):
            self._listeners.append(listener.on_transition)
        elif callable(listener):
            self._listeners.append(listener)
        else:
            raise TypeError(
                f"Transition listener must be callable or define on_transition, got {type(listener).__name__}"
            )

    def notify(self, ctx: Context) -> None:
        """Notify every listener of a completed transition."""
        for listener in self._listeners:
            try:
                listener(ctx)
            except Exception as e:
                logger.error(f"Transition listener error in {self.name}: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._listeners)

    @property
    def listener_count(self) -> int:
        """Number of registered listeners."""
        return len(self._listeners)


@dataclass
class TransitionRecorder:
    """Listener that records every transition it is notified about.

    Each record is a ``(from_state_name, to_state_name, event_key)`` tuple.

    Args:
        name: Name of the recorder.
    """

    name: str = "recorder"
    _records: list[tuple[Optional[str], str, Hashable]] = field(default_factory=list)

    def on_transition(self, ctx: Context) -> None:
        from_name = ctx.from_state.name if ctx.from_state is not None else None
        to_name = ctx.to_state.name if ctx.to_state is not None else ""
        self._records.append((from_name, to_name, ctx.key))

    def get_records(self) -> list[tuple[Optional[str], str, Hashable]]:
        """Get all recorded transitions."""
        return self._records.copy()

    def clear(self) -> None:
        """Clear recorded transitions."""
        self._records.clear()
