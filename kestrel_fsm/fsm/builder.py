"""Fluent builder for state machine definitions."""

from __future__ import annotations

from typing import Hashable, Optional, Union

from kestrel_fsm.core.observer import ListenerLike
from kestrel_fsm.core.result import Err, Ok, Result
from kestrel_fsm.fsm.machine import StateMachine, StateMachineInstance
from kestrel_fsm.fsm.models import FallbackHandler
from kestrel_fsm.fsm.state import Callback

FallbackSpec = Union[str, FallbackHandler]


class FSMBuilder:
    """Fluent API builder for FSM configuration.

    States are referenced by name; the builder wires the State objects
    together when build() is called.

    All builder methods return self for method chaining:
        >>> result = (FSMBuilder("traffic")
        ...     .with_state("GREEN")
        ...     .with_state("YELLOW")
        ...     .with_transition("GREEN", "TICK", "YELLOW")
        ...     .build("GREEN"))
        >>> result.unwrap().state.name
        'GREEN'

    Validation:
        The build() method validates configuration before creating the FSM:
        - All states used in transitions and fallbacks must be defined
        - Initial state must be a defined state

    Thread Safety:
        This builder is NOT thread-safe. Build in a single thread
        before sharing the machine.
    """

    def __init__(self, name: str = "fsm"):
        self._name = name
        self._states: dict[str, tuple[Optional[Callback], Optional[Callback], Optional[Callback]]] = {}
        self._transitions: list[tuple[str, Hashable, str]] = []
        self._state_fallbacks: dict[str, FallbackSpec] = {}
        self._machine_fallback: Optional[FallbackSpec] = None
        self._listeners: list[ListenerLike] = []

    def with_state(
        self,
        name: str,
        on_enter: Optional[Callback] = None,
        on_event: Optional[Callback] = None,
        on_exit: Optional[Callback] = None,
    ) -> FSMBuilder:
        """Add a state. Adding a name again replaces its callbacks."""
        self._states[name] = (on_enter, on_event, on_exit)
        return self

    def with_transition(self, from_state: str, key: Hashable, to_state: str) -> FSMBuilder:
        """Add a transition from ``from_state`` to ``to_state`` on ``key``."""
        self._transitions.append((from_state, key, to_state))
        return self

    def with_fallback(self, from_state: str, fallback: FallbackSpec) -> FSMBuilder:
        """Set the fallback of ``from_state``: a target state name or a handler."""
        self._state_fallbacks[from_state] = fallback
        return self

    def with_machine_fallback(self, fallback: FallbackSpec) -> FSMBuilder:
        """Set the machine fallback: a target state name or a handler."""
        self._machine_fallback = fallback
        return self

    def with_listener(self, listener: ListenerLike) -> FSMBuilder:
        self._listeners.append(listener)
        return self

    def _undefined_states(self) -> set[str]:
        referenced: set[str] = set()
        for from_state, _, to_state in self._transitions:
            referenced.update((from_state, to_state))
        for from_state, fallback in self._state_fallbacks.items():
            referenced.add(from_state)
            if isinstance(fallback, str):
                referenced.add(fallback)
        if isinstance(self._machine_fallback, str):
            referenced.add(self._machine_fallback)
        return referenced - set(self._states)

    def build_machine(self) -> Result[StateMachine]:
        """Build the machine definition.

        Returns:
            Result[StateMachine]: Ok with the machine, Err if configuration invalid.
        """
        undefined = self._undefined_states()
        if undefined:
            return Err(
                f"Undefined states in transitions: {sorted(undefined)}. "
                f"Define states using with_state() before using them in transitions.",
                code="UNDEFINED_STATE_IN_TRANSITION",
                details={"states": sorted(undefined)},
            )

        sm = StateMachine(self._name)
        for name, (on_enter, on_event, on_exit) in self._states.items():
            sm.add_state(name, on_enter=on_enter, on_event=on_event, on_exit=on_exit)

        for from_state, key, to_state in self._transitions:
            sm.states[from_state].add_transition(key, sm.states[to_state])

        for from_state, fallback in self._state_fallbacks.items():
            if isinstance(fallback, str):
                sm.states[from_state].set_fallback(sm.states[fallback])
            else:
                sm.states[from_state].set_fallback_handler(fallback)

        if isinstance(self._machine_fallback, str):
            sm.set_fallback(sm.states[self._machine_fallback])
        elif self._machine_fallback is not None:
            sm.set_fallback_handler(self._machine_fallback)

        for listener in self._listeners:
            sm.add_transition_listener(listener)
        return Ok(sm)

    def build(self, initial_state: str) -> Result[StateMachineInstance]:
        """Build the machine and an instance positioned at ``initial_state``.

        Returns:
            Result[StateMachineInstance]: Ok with the instance, Err if configuration invalid.
        """
        if initial_state not in self._states:
            return Err(
                f"Invalid initial state: {initial_state}. Valid states are: {sorted(self._states)}",
                code="INVALID_INITIAL_STATE",
                details={"name": initial_state},
            )
        return self.build_machine().bind(lambda sm: sm.from_state_name(initial_state))
