"""State machine definition, live instances and the dispatch engine.

A StateMachine is the template: a registry of named states, a machine-level
fallback and the transition listeners. It has no notion of a current state.
A StateMachineInstance binds a definition to a current state and is what
callers fire events at.

Firing one event runs one or more episodes. Each episode:

    resolve -> exit -> enter -> event -> commit -> notify

and is followed by another episode when the on-event callback chained a
follow-up event.

Resolution order (first match wins):
    1. keyed transition of the current state
    2. state fallback (static target, or dynamic handler returning non-None)
    3. machine fallback (static target, or dynamic handler returning non-None)
    4. TransitionNotFound

Thread Safety:
    No internal locking. Build the definition fully, then share it
    read-only. Independent instances may fire concurrently from different
    threads; a single instance must not.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from kestrel_fsm.core.observer import ListenerLike, ListenerRegistry
from kestrel_fsm.core.result import Err, Ok, Result, StateNotFound, TransitionNotFound
from kestrel_fsm.core.settings import FSMSettings
from kestrel_fsm.fsm.models import _UNSET, Context, Event, Fallback, FallbackHandler, Phase, as_event
from kestrel_fsm.fsm.state import Callback, State


logger = logging.getLogger(__name__)


class StateMachine:
    """Finite state machine definition.

    Listeners registered here (directly or through any instance) are shared
    by every instance created from this definition.

    Example:
        >>> sm = StateMachine("traffic")
        >>> green = sm.add_state("GREEN")
        >>> yellow = sm.add_state("YELLOW")
        >>> _ = green.add_transition("TICK", yellow)
        >>> smi = sm.from_state(green)
        >>> smi.fire("TICK").unwrap().name
        'YELLOW'
    """

    def __init__(self, name: str = "fsm"):
        self._name = name
        self.states: dict[str, State] = {}
        self.fallback: Fallback = Fallback.none()
        self.listeners = ListenerRegistry(name)

    @property
    def name(self) -> str:
        return self._name

    def add_state(
        self,
        state: Union[State, str],
        on_enter: Optional[Callback] = None,
        on_event: Optional[Callback] = None,
        on_exit: Optional[Callback] = None,
    ) -> State:
        """Register a state, creating it when given a name.

        Re-adding a name replaces the previous definition. Callbacks given
        together with an existing State override that state's callbacks.

        Args:
            state: State object or name of the state to create.
            on_enter: Optional callback run when entering the state.
            on_event: Optional callback run on every event resolved to the state.
            on_exit: Optional callback run when leaving the state.

        Returns:
            State: The registered state.
        """
        if isinstance(state, State):
            if on_enter is not None:
                state.on_enter = on_enter
            if on_event is not None:
                state.on_event = on_event
            if on_exit is not None:
                state.on_exit = on_exit
        else:
            state = State(state, on_enter=on_enter, on_event=on_event, on_exit=on_exit)

        if state.name in self.states and self.states[state.name] is not state:
            logger.debug(f"Redefining state {state.name} in machine {self._name}")
        self.states[state.name] = state
        return state

    def get_state(self, name: str) -> Optional[State]:
        return self.states.get(name)

    def state_by_name(self, name: str) -> Result[State]:
        """Look up a registered state.

        Returns:
            Result[State]: Ok with the state, StateNotFound otherwise.
        """
        state = self.states.get(name)
        if state is None:
            return StateNotFound(name)
        return Ok(state)

    def set_fallback(self, target: State) -> StateMachine:
        """Use ``target`` when neither keyed transitions nor state fallbacks match."""
        self.fallback = Fallback.static(target)
        return self

    def set_fallback_handler(self, handler: FallbackHandler) -> StateMachine:
        self.fallback = Fallback.dynamic(handler)
        return self

    def clear_fallback(self) -> StateMachine:
        self.fallback = Fallback.none()
        return self

    def add_transition_listener(self, listener: ListenerLike) -> None:
        """Observe every completed transition of every instance of this machine."""
        self.listeners.add(listener)

    def from_state(self, state: State) -> StateMachineInstance:
        """Create an instance positioned at ``state``. No callbacks run."""
        return StateMachineInstance(self, state)

    def from_state_name(self, name: str) -> Result[StateMachineInstance]:
        """Create an instance positioned at the named state. No callbacks run.

        Returns:
            Result[StateMachineInstance]: Ok with the instance, StateNotFound otherwise.
        """
        return self.state_by_name(name).bind(lambda state: Ok(self.from_state(state)))

    def render(self, current: Optional[State] = None, settings: Optional[FSMSettings] = None) -> str:
        """Render the machine as Graphviz DOT text, highlighting ``current``."""
        from kestrel_fsm.fsm.dot import render

        return render(self, current=current, settings=settings)

    dot = render

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"StateMachine({self._name!r}, states={list(self.states)!r})"

    def _fire(self, instance: StateMachineInstance, event: Event) -> Result[State]:
        """Run episodes until no follow-up event is requested."""
        user_data: dict[str, Any] = {}
        next_event: Optional[Event] = event
        while next_event is not None:
            outcome = self._run_episode(instance, next_event, user_data)
            if outcome.is_err():
                return outcome  # type: ignore[return-value]
            next_event = outcome.unwrap()
            if next_event is not None:
                logger.debug(
                    f"Machine {self._name} chaining event {next_event.key!r} from state {instance.state.name}"
                )
        return Ok(instance.state)

    def _run_episode(
        self, instance: StateMachineInstance, event: Event, user_data: dict[str, Any]
    ) -> Result[Optional[Event]]:
        current = instance.state
        ctx = Context(self, event._from(current), current, user_data)

        resolved = self._resolve(current, ctx)
        if resolved.is_err():
            return resolved  # type: ignore[return-value]
        target = resolved.unwrap()
        diff_state = target is not current

        ctx._advance(Phase.EXIT, target)
        if diff_state and current.on_exit is not None:
            exit_result = self._run_callback(current.on_exit, ctx, current)
            if exit_result.is_err():
                return exit_result

        ctx._advance(Phase.ENTER)
        if diff_state and target.on_enter is not None:
            enter_result = self._run_callback(target.on_enter, ctx, target)
            if enter_result.is_err():
                return enter_result

        ctx._advance(Phase.EVENT)
        follow_up: Optional[Event] = None
        if target.on_event is not None:
            event_result = self._run_callback(target.on_event, ctx, target)
            if event_result.is_err():
                return event_result
            follow_up = event_result.unwrap()
        if follow_up is None:
            follow_up = ctx.next_event

        instance._commit(target)
        logger.debug(f"Machine {self._name}: {current.name} -> {target.name} on {ctx.key!r}")

        ctx._advance(Phase.NOTIFY)
        self.listeners.notify(ctx)
        return Ok(follow_up)

    def _resolve(self, current: State, ctx: Context) -> Result[State]:
        target = current.transitions.get(ctx.key)
        if target is not None:
            return Ok(target)

        for scope, fallback in (("state", current.fallback), ("machine", self.fallback)):
            try:
                target = fallback.resolve(ctx)
            except Exception as e:
                logger.error(
                    f"{scope.capitalize()} fallback handler failed for event {ctx.key!r} "
                    f"in state {current.name} of machine {self._name}: {e}",
                    exc_info=True,
                )
                return Err(
                    f"Fallback handler error: {e}",
                    code="HANDLER_ERROR",
                    details={"exception": e, "scope": scope, "state": current.name},
                )
            if target is not None:
                logger.debug(f"Event {ctx.key!r} in state {current.name} resolved by {scope} fallback")
                return Ok(target)

        logger.warning(f"No transition from state {current.name} for event {ctx.key!r} in machine {self._name}")
        return TransitionNotFound(current.name, ctx.key)

    def _run_callback(self, callback: Callback, ctx: Context, state: State) -> Result[Optional[Event]]:
        phase = ctx.phase.value
        try:
            outcome = callback(ctx)
        except Exception as e:
            logger.error(
                f"On-{phase} callback of state {state.name} in machine {self._name} raised: {e}",
                exc_info=True,
            )
            return Err(
                f"Callback error in on-{phase} of state {state.name}: {e}",
                code="CALLBACK_ERROR",
                details={"exception": e, "phase": phase, "state": state.name},
            )

        if isinstance(outcome, Err):
            logger.info(f"On-{phase} callback of state {state.name} failed: {outcome.error}")
            return outcome
        if isinstance(outcome, Event):
            if ctx.phase is not Phase.EVENT:
                return Err(
                    f"Not a valid call site: on-{phase} callback of state {state.name} returned an event",
                    code="INVALID_CALL_SITE",
                    details={"phase": phase, "state": state.name},
                )
            if not outcome.has_data:
                outcome = outcome.with_data(ctx.data)
            return Ok(outcome)
        return Ok(None)


class StateMachineInstance:
    """A live machine: a definition plus the current state.

    Example:
        >>> sm = StateMachine()
        >>> idle = sm.add_state("idle")
        >>> smi = sm.from_state(idle)
        >>> smi.fire("go").is_err()
        True
        >>> smi.state.name
        'idle'
    """

    def __init__(self, machine: StateMachine, state: State):
        if state is None:
            raise ValueError("Instance state must not be None")
        self._machine = machine
        self._state = state
        self._firing = False

    @property
    def machine(self) -> StateMachine:
        return self._machine

    @property
    def state(self) -> State:
        """Current state."""
        return self._state

    @property
    def is_firing(self) -> bool:
        return self._firing

    def set_current_state(self, state: State) -> None:
        """Move to ``state`` without running any callback or listener."""
        if state is None:
            raise ValueError("Instance state must not be None")
        self._state = state

    def fire(self, key: Any, data: Any = _UNSET) -> Result[State]:
        """Submit an event and run it, and any chained events, to completion.

        Args:
            key: Event key, Event, or object exposing its key as ``kind``.
            data: Optional payload attached to the event.

        Returns:
            Result[State]: Ok with the state reached, or the first error.
            On error the current state is whatever the last committed
            episode left it at.
        """
        if self._firing:
            logger.warning(f"Nested fire of {key!r} rejected on machine {self._machine.name}")
            return Err(
                "Not a valid call site: instance is already firing; "
                "chain events with ctx.fire() from an on-event callback",
                code="INVALID_CALL_SITE",
                details={"state": self._state.name},
            )

        event = as_event(key, data)
        self._firing = True
        try:
            return self._machine._fire(self, event)
        finally:
            self._firing = False

    def add_transition_listener(self, listener: ListenerLike) -> None:
        """Register a listener on the shared definition.

        The listener also observes sibling instances of the same machine.
        """
        self._machine.add_transition_listener(listener)

    def render(self, settings: Optional[FSMSettings] = None) -> str:
        """Render the machine with the current state highlighted."""
        return self._machine.render(current=self._state, settings=settings)

    def _commit(self, state: State) -> None:
        self._state = state

    def __repr__(self) -> str:
        return f"StateMachineInstance({self._machine.name!r}, state={self._state.name!r})"
