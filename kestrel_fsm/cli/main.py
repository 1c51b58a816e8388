"""kestrel-fsm CLI: drive and render the traffic-light example machine."""

from __future__ import annotations

import sys
from typing import Any, NoReturn, Optional, cast

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kestrel_fsm import __version__
from kestrel_fsm.core.logging_config import setup_logging
from kestrel_fsm.core.result import Err
from kestrel_fsm.core.settings import get_settings
from kestrel_fsm.fsm.example import CONTINUE, LOOP, TICK, build_traffic_light
from kestrel_fsm.fsm.loggers import JsonLogger, LoggingListener

console = Console(stderr=False)
err_console = Console(stderr=True)

DEFAULT_EVENTS = (TICK, TICK, LOOP, LOOP, TICK)


def _fail(result: Err[Any]) -> NoReturn:
    err_console.print(f"[red]Error: {escape(result.error)}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable INFO logging, including each transition")
def cli(verbose: bool) -> None:
    """kestrel-fsm - embeddable finite state machine engine"""
    setup_logging(verbose=verbose)


@click.command()
@click.option("--current", "-c", help="Name of the state to highlight")
@click.option(
    "--rankdir",
    type=click.Choice(["LR", "TB", "RL", "BT"]),
    help="Graph direction (default: KESTREL_FSM_GRAPH_RANKDIR or LR)",
)
def render(current: Optional[str], rankdir: Optional[str]) -> None:
    """Print the traffic-light machine as Graphviz DOT.

    Pipe the output to ``dot -Tpng`` to draw it.
    """
    sm = build_traffic_light()
    settings = get_settings()
    if rankdir:
        settings = settings.model_copy(update={"graph_rankdir": rankdir})

    state = None
    if current:
        result = sm.state_by_name(current)
        if result.is_err():
            _fail(cast(Err[Any], result))
        state = result.unwrap()

    # DOT brackets would be read as rich markup
    click.echo(sm.render(current=state, settings=settings))


@click.command()
@click.argument("events", nargs=-1)
@click.option("--start", "-s", default="GREEN", show_default=True, help="Initial state")
@click.option("--json", "as_json", is_flag=True, help="Print transitions as JSON")
def run(events: tuple[str, ...], start: str, as_json: bool) -> None:
    """Fire EVENTS at the traffic light and list the transitions.

    Without EVENTS fires TICK TICK LOOP LOOP TICK. BOUNCE chains a
    CONTINUE event, so it never remains the current state.
    """
    sm = build_traffic_light()
    json_logger = JsonLogger()
    sm.add_transition_listener(LoggingListener())
    sm.add_transition_listener(json_logger)

    instance = sm.from_state_name(start)
    if instance.is_err():
        _fail(cast(Err[Any], instance))
    smi = instance.unwrap()

    failure: Optional[Err[Any]] = None
    for key in events or DEFAULT_EVENTS:
        result = smi.fire(key)
        if result.is_err():
            failure = cast(Err[Any], result)
            break

    if as_json:
        click.echo(json_logger.to_json())
    else:
        table = Table(title=f"{sm.name} transitions")
        table.add_column("From", style="cyan")
        table.add_column("Event", style="yellow")
        table.add_column("To", style="green")
        for record in json_logger.records:
            style = "dim" if record.key == CONTINUE else None
            table.add_row(record.from_state, record.key, record.to_state, style=style)
        console.print(table)
        console.print(f"Current state: [bold]{smi.state.name}[/bold]")

    if failure is not None:
        _fail(failure)


cast(Any, cli).add_command(render)
cast(Any, cli).add_command(run)


if __name__ == "__main__":
    cli()
