"""Traffic-light example machine.

    GREEN --TICK--> YELLOW --TICK--> BOUNCE --CONTINUE--> RED --TICK--> GREEN
    YELLOW --(fallback)--> EXIT
    RED --LOOP--> RED

BOUNCE chains a CONTINUE event from its on-event callback, so a single
TICK fired from YELLOW lands on RED.

Run this example:
    python -m kestrel_fsm.fsm.example
"""

from __future__ import annotations

from typing import Any, Optional

from kestrel_fsm.core.logging_config import setup_logging
from kestrel_fsm.fsm.loggers import JsonLogger, LoggingListener
from kestrel_fsm.fsm.machine import StateMachine
from kestrel_fsm.fsm.models import Context

TICK = "TICK"
LOOP = "LOOP"
CONTINUE = "CONTINUE"


def _bounce(ctx: Context) -> Any:
    return ctx.fire(CONTINUE)


def build_traffic_light(name: str = "TrafficLight") -> StateMachine:
    """Build the traffic-light machine definition."""
    sm = StateMachine(name)
    green = sm.add_state("GREEN")
    yellow = sm.add_state("YELLOW")
    bounce = sm.add_state("BOUNCE", on_event=_bounce)
    red = sm.add_state("RED")
    exit_state = sm.add_state("EXIT")

    green.add_transition(TICK, yellow)
    yellow.add_transition(TICK, bounce)
    yellow.set_fallback(exit_state)
    bounce.add_transition(CONTINUE, red)
    red.add_transition(TICK, green)
    red.add_transition(LOOP, red)
    return sm


def run_example(events: Optional[list[str]] = None) -> JsonLogger:
    """Fire ``events`` at a traffic light starting on GREEN.

    Returns:
        JsonLogger holding every completed transition
    """
    if events is None:
        events = [TICK, TICK, LOOP, LOOP, TICK]

    sm = build_traffic_light()
    json_logger = JsonLogger()
    sm.add_transition_listener(LoggingListener())
    sm.add_transition_listener(json_logger)

    smi = sm.from_state_name("GREEN").unwrap()
    for key in events:
        result = smi.fire(key)
        if result.is_err():
            print(f"{key}: {result.error}")

    print(smi.render())
    print()
    print(json_logger.to_json())
    return json_logger


if __name__ == "__main__":
    setup_logging(verbose=True)
    run_example()
