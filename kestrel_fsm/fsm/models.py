"""Data models for the FSM engine.

Models:
- Phase: Stage of a firing episode a callback is running in
- Event: Immutable event key with optional payload
- FallbackKind / Fallback: Tagged catch-all transition (none, static, dynamic)
- Context: Mutable firing envelope passed to callbacks and listeners
- TransitionRecord: Serializable record of a completed transition
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Hashable, Optional

from pydantic import BaseModel, Field

from kestrel_fsm.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from kestrel_fsm.fsm.machine import StateMachine
    from kestrel_fsm.fsm.state import State


logger = logging.getLogger(__name__)

_UNSET: Any = object()


class Phase(str, Enum):
    """Stage of a firing episode."""

    RESOLVE = "resolve"  # Fallback handlers computing a target
    EXIT = "exit"
    ENTER = "enter"
    EVENT = "event"  # The only phase where chaining is permitted
    NOTIFY = "notify"  # Post-commit listener notification


@dataclass(frozen=True)
class Event:
    """An event submitted to a state machine.

    Attributes:
        key: Identifier matched against transition tables. Any hashable value.
        data: Optional payload visible to every callback of the episode.
        from_state: State the event was fired from (set by the engine).
        has_data: Whether ``data`` was given, even as None. A chained
            event without data inherits the current payload.
    """

    key: Hashable
    data: Any = _UNSET
    from_state: Optional[State] = field(default=None, compare=False, repr=False)
    has_data: bool = field(default=False, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.key is None:
            raise ValueError("Event key must not be None")
        object.__setattr__(self, "has_data", self.data is not _UNSET)
        if self.data is _UNSET:
            object.__setattr__(self, "data", None)

    def with_data(self, data: Any) -> Event:
        """Return a copy of this event carrying a different payload."""
        return replace(self, data=data)

    def _from(self, state: State) -> Event:
        return replace(self, from_state=state, data=self.data if self.has_data else _UNSET)


def as_event(obj: Any, data: Any = _UNSET) -> Event:
    """Normalize what callers pass to ``fire`` into an Event.

    Accepts an Event, an object exposing its key through a ``kind``
    attribute or method (the object itself becomes the payload), or a bare
    key. An explicit ``data`` argument always overrides the payload.
    """
    if isinstance(obj, Event):
        event = obj
    elif hasattr(obj, "kind"):
        kind = obj.kind
        event = Event(key=kind() if callable(kind) else kind, data=obj)
    else:
        event = Event(key=obj)
    if data is not _UNSET:
        event = event.with_data(data)
    return event


class FallbackKind(str, Enum):
    """Variants of a fallback transition."""

    NONE = "none"
    STATIC = "static"  # Fixed target state
    DYNAMIC = "dynamic"  # Target computed from the firing context


FallbackHandler = Callable[["Context"], Optional["State"]]


@dataclass(frozen=True)
class Fallback:
    """Catch-all transition used when no keyed transition matches.

    One Fallback exists per scope (state or machine). Static and dynamic
    fallbacks share this single field, so setting one replaces the other.
    """

    kind: FallbackKind = FallbackKind.NONE
    target: Optional[State] = None
    handler: Optional[FallbackHandler] = None

    @classmethod
    def none(cls) -> Fallback:
        return cls()

    @classmethod
    def static(cls, target: State) -> Fallback:
        if target is None:
            raise ValueError("Static fallback target must not be None")
        return cls(kind=FallbackKind.STATIC, target=target)

    @classmethod
    def dynamic(cls, handler: FallbackHandler) -> Fallback:
        if not callable(handler):
            raise TypeError("Fallback handler must be callable")
        return cls(kind=FallbackKind.DYNAMIC, handler=handler)

    @property
    def is_set(self) -> bool:
        return self.kind is not FallbackKind.NONE

    def resolve(self, ctx: Context) -> Optional[State]:
        """Return the fallback target for ctx, or None for "no opinion"."""
        if self.kind is FallbackKind.STATIC:
            return self.target
        if self.kind is FallbackKind.DYNAMIC and self.handler is not None:
            return self.handler(ctx)
        return None


class Context:
    """Firing envelope passed to callbacks, fallback handlers and listeners.

    ``from_state`` and ``to_state`` are set by the engine and read-only to
    callbacks. ``user_data`` is a scratch dict shared by all callbacks of
    one firing, including chained episodes.

    Example:
        >>> def on_event(ctx: Context):
        ...     if ctx.data and ctx.data.get("retry"):
        ...         return ctx.fire("RETRY")
    """

    def __init__(
        self,
        machine: StateMachine,
        event: Event,
        from_state: State,
        user_data: Optional[dict[str, Any]] = None,
    ):
        self._machine = machine
        self._event = event
        self._from_state = from_state
        self._to_state: Optional[State] = None
        self._phase = Phase.RESOLVE
        self._next_event: Optional[Event] = None
        self.user_data: dict[str, Any] = user_data if user_data is not None else {}
        self.timestamp = datetime.now()

    @property
    def machine(self) -> StateMachine:
        return self._machine

    @property
    def event(self) -> Event:
        return self._event

    @property
    def key(self) -> Hashable:
        return self._event.key

    @property
    def data(self) -> Any:
        return self._event.data

    @property
    def from_state(self) -> State:
        return self._from_state

    @property
    def to_state(self) -> Optional[State]:
        return self._to_state

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def next_event(self) -> Optional[Event]:
        """Follow-up event requested during the EVENT phase, if any."""
        return self._next_event

    def fire(self, key: Any, data: Any = _UNSET) -> Result[None]:
        """Request a follow-up event once the current transition commits.

        Only valid from an on-event callback. The current payload is carried
        forward unless ``data`` is given or ``key`` brings its own payload.

        Args:
            key: Event key, Event, or object with a ``kind``.
            data: Optional payload override.

        Returns:
            Result[None]: Ok when the follow-up was scheduled,
            Err(code="INVALID_CALL_SITE") outside the EVENT phase.
        """
        if self._phase is not Phase.EVENT:
            logger.warning(
                f"Chained fire of {key!r} rejected in {self._phase.value} phase of machine {self._machine.name}"
            )
            return Err(
                f"Not a valid call site: events can only be chained from an on-event callback "
                f"(current phase: {self._phase.value})",
                code="INVALID_CALL_SITE",
                details={"phase": self._phase.value},
            )
        event = as_event(key, data)
        if not event.has_data:
            event = event.with_data(self._event.data)
        self._next_event = event
        return Ok(None)

    def _advance(self, phase: Phase, to_state: Optional[State] = None) -> None:
        self._phase = phase
        if to_state is not None:
            self._to_state = to_state

    def __repr__(self) -> str:
        to_name = self._to_state.name if self._to_state is not None else None
        return (
            f"Context(key={self.key!r}, from={self._from_state.name!r}, "
            f"to={to_name!r}, phase={self._phase.value!r})"
        )


class TransitionRecord(BaseModel):
    """Serializable record of one completed transition."""

    machine: str = Field(..., description="Name of the state machine")
    from_state: str = Field(..., description="State the transition started in")
    to_state: str = Field(..., description="State the transition committed")
    key: str = Field(..., description="String form of the event key")
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_context(cls, ctx: Context) -> TransitionRecord:
        return cls(
            machine=ctx.machine.name,
            from_state=ctx.from_state.name,
            to_state=ctx.to_state.name if ctx.to_state is not None else "",
            key=str(ctx.key),
            timestamp=ctx.timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "machine": self.machine,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "key": self.key,
            "timestamp": self.timestamp.isoformat(),
        }
