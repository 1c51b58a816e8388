"""Transition listeners that log completed transitions.

Loggers:
- LoggingListener: Human-readable line per transition via ``logging``
- JsonLogger: Structured TransitionRecord collection with JSON export
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from kestrel_fsm.fsm.models import Context, TransitionRecord


class LoggingListener:
    """Logs every completed transition.

    Example:
        >>> sm.add_transition_listener(LoggingListener())
        # INFO kestrel_fsm.transitions: [traffic] GREEN -> YELLOW on 'TICK'
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger("kestrel_fsm.transitions")
        self.level = level

    def on_transition(self, ctx: Context) -> None:
        to_name = ctx.to_state.name if ctx.to_state is not None else None
        self.logger.log(
            self.level,
            f"[{ctx.machine.name}] {ctx.from_state.name} -> {to_name} on {ctx.key!r}",
        )


class JsonLogger:
    """Structured JSON logger for transitions.

    Collects a TransitionRecord per completed transition for downstream
    processing, analysis, or storage.
    """

    def __init__(self) -> None:
        self.records: list[TransitionRecord] = []

    def on_transition(self, ctx: Context) -> None:
        self.records.append(TransitionRecord.from_context(ctx))

    def to_json(self, indent: int = 2) -> str:
        """Export collected records to a JSON string.

        Args:
            indent: Number of spaces for indentation (default: 2)

        Returns:
            JSON array of transition records
        """
        return json.dumps([record.to_dict() for record in self.records], indent=indent)

    def clear(self) -> None:
        self.records.clear()
