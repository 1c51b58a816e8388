"""State: a named node of the machine graph."""

from __future__ import annotations

from typing import Any, Callable, Hashable, Optional

from kestrel_fsm.fsm.models import Context, Fallback, FallbackHandler, FallbackKind

# Callbacks return None/Ok on success or Err on failure. An on-event
# callback may also return an Event to chain it.
Callback = Callable[[Context], Any]

EDGE_EVENT = "event"
EDGE_STATE_FALLBACK = "state fallback"
EDGE_MACHINE_FALLBACK = "machine fallback"


class State:
    """A named state with keyed transitions, a fallback and callbacks.

    Callbacks:
        on_exit: called when leaving this state for a different one.
        on_enter: called when entering this state from a different one.
        on_event: called on every event resolved to this state, including
            self-transitions. May chain a follow-up event.

    States compare by identity. Two State objects with the same name are
    different states.

    Example:
        >>> green, yellow = State("GREEN"), State("YELLOW")
        >>> green.add_transition("TICK", yellow).name
        'GREEN'
    """

    def __init__(
        self,
        name: str,
        on_enter: Optional[Callback] = None,
        on_event: Optional[Callback] = None,
        on_exit: Optional[Callback] = None,
    ):
        if not name:
            raise ValueError("State name must not be empty")
        self._name = name
        self.transitions: dict[Hashable, State] = {}
        self.fallback: Fallback = Fallback.none()
        self.on_enter = on_enter
        self.on_event = on_event
        self.on_exit = on_exit

    @property
    def name(self) -> str:
        return self._name

    def add_transition(self, key: Hashable, to: State) -> State:
        """Add a transition to ``to`` for events with ``key``.

        A ``None`` key registers ``to`` as this state's static fallback.

        Returns:
            State: self for method chaining.
        """
        if to is None:
            raise ValueError(f"Transition target for {key!r} in state {self._name} must not be None")
        if key is None:
            return self.set_fallback(to)
        self.transitions[key] = to
        return self

    def set_fallback(self, target: State) -> State:
        """Use ``target`` when no keyed transition matches. Replaces any handler."""
        self.fallback = Fallback.static(target)
        return self

    def set_fallback_handler(self, handler: FallbackHandler) -> State:
        """Compute the target from the context when no keyed transition matches.

        The handler may return None to defer to the machine fallback.
        Replaces any static fallback.
        """
        self.fallback = Fallback.dynamic(handler)
        return self

    def clear_fallback(self) -> State:
        self.fallback = Fallback.none()
        return self

    def is_end(self) -> bool:
        """True if no keyed transition or fallback leaves this state."""
        return not self.transitions and not self.fallback.is_set

    def outgoing(self) -> list[tuple[str, State, str]]:
        """List fixed outgoing edges as ``(label, target, edge_kind)``."""
        edges = [(str(key), target, EDGE_EVENT) for key, target in self.transitions.items()]
        if self.fallback.kind is FallbackKind.STATIC and self.fallback.target is not None:
            edges.append((EDGE_STATE_FALLBACK, self.fallback.target, EDGE_STATE_FALLBACK))
        return edges

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"State({self._name!r})"
