"""Graphviz DOT rendering of a state machine.

The output is deterministic: node and edge listings are sorted, so
rendering the same machine, or an isomorphic machine built in a different
order, yields byte-identical text.

Start states (no incoming edge from another state) and end states (no
outgoing keyed or state fallback edge) are drawn as double circles.
Fallback edges are dashed and labelled "state fallback" or
"machine fallback".
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional

from kestrel_fsm.core.settings import FSMSettings, get_settings
from kestrel_fsm.fsm.models import FallbackKind
from kestrel_fsm.fsm.state import EDGE_MACHINE_FALLBACK, EDGE_STATE_FALLBACK, State

if TYPE_CHECKING:
    from kestrel_fsm.fsm.machine import StateMachine

_ID_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Graphviz keywords, case-insensitive; never valid as bare IDs
_KEYWORDS = frozenset({"node", "edge", "graph", "digraph", "subgraph", "strict"})

DYNAMIC_TARGET = "?"

_EDGE_STYLE = {
    EDGE_STATE_FALLBACK: ", style = dashed",
    EDGE_MACHINE_FALLBACK: ", style = dashed, color = gray",
}


def quote(value: str) -> str:
    """Escape and double-quote a DOT string."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def node_id(name: str) -> str:
    """Return ``name`` as a DOT identifier, quoting it when needed."""
    if _ID_RE.fullmatch(name) and name.lower() not in _KEYWORDS:
        return name
    return quote(name)


def edges(machine: StateMachine, include_dynamic: bool = False) -> list[tuple[str, str, str, str]]:
    """Collect the drawable edges of ``machine``.

    Returns:
        List of ``(from_name, to_name, label, edge_kind)`` tuples.
    """
    result: list[tuple[str, str, str, str]] = []
    machine_fallback = machine.fallback
    for state in machine.states.values():
        for label, target, kind in state.outgoing():
            result.append((state.name, target.name, label, kind))

        if include_dynamic and state.fallback.kind is FallbackKind.DYNAMIC:
            result.append((state.name, DYNAMIC_TARGET, EDGE_STATE_FALLBACK, EDGE_STATE_FALLBACK))

        # A static state fallback always matches, so the machine fallback is unreachable.
        if state.fallback.kind is FallbackKind.STATIC:
            continue
        if machine_fallback.kind is FallbackKind.STATIC and machine_fallback.target is not None:
            result.append(
                (state.name, machine_fallback.target.name, EDGE_MACHINE_FALLBACK, EDGE_MACHINE_FALLBACK)
            )
        elif include_dynamic and machine_fallback.kind is FallbackKind.DYNAMIC:
            result.append((state.name, DYNAMIC_TARGET, EDGE_MACHINE_FALLBACK, EDGE_MACHINE_FALLBACK))
    return result


def is_end(state: State) -> bool:
    return state.is_end()


def is_start(state: State, all_edges: list[tuple[str, str, str, str]]) -> bool:
    """True if no other state has an edge into ``state``."""
    for from_name, to_name, _, _ in all_edges:
        if from_name != state.name and to_name == state.name:
            return False
    return True


def terminal_states(machine: StateMachine, all_edges: list[tuple[str, str, str, str]]) -> list[str]:
    """Sorted names of the start and end states."""
    names = [
        state.name
        for state in machine.states.values()
        if is_end(state) or is_start(state, all_edges)
    ]
    return sorted(names)


def render(
    machine: StateMachine,
    current: Optional[State] = None,
    settings: Optional[FSMSettings] = None,
) -> str:
    """Render ``machine`` as a Graphviz digraph.

    Args:
        machine: Machine to render.
        current: Optional state to highlight.
        settings: Rendering settings (default: global settings).

    Returns:
        DOT source text.
    """
    settings = settings or get_settings()
    all_edges = edges(machine, include_dynamic=settings.render_dynamic_fallbacks)

    lines = [f"digraph {node_id(settings.graph_name)} {{", f"\trankdir={settings.graph_rankdir};"]

    terminals = terminal_states(machine, all_edges)
    if terminals:
        lines.append(f"\tnode [shape = doublecircle]; {', '.join(node_id(n) for n in terminals)};")
    lines.append("\tnode [shape = circle];")

    for name in sorted(machine.states):
        state = machine.states[name]
        if current is not None and state is current:
            lines.append(
                f"\t{node_id(name)} [style = filled, fillcolor = {quote(settings.graph_highlight_color)}];"
            )
        else:
            lines.append(f"\t{node_id(name)};")

    edge_lines = sorted(
        f"\t{node_id(from_name)} -> {node_id(to_name)} [label = {quote(label)}{_EDGE_STYLE.get(kind, '')}];"
        for from_name, to_name, label, kind in all_edges
    )
    lines.extend(edge_lines)

    lines.append('\tlabelloc="t";')
    lines.append(f"\tlabel={quote(machine.name)};")
    lines.append("}")
    return "\n".join(lines)
