"""Command line interface for kestrel-fsm."""

from kestrel_fsm.cli.main import cli

__all__ = ["cli"]
