"""CLI command modules for recall.

Each module contains the handler for one top-level subcommand.
"""

from recall.cli.commands.discover import cmd_discover
from recall.cli.commands.interactive import InteractiveSession, cmd_interactive
from recall.cli.commands.replay import cmd_replay

__all__ = [
    "InteractiveSession",
    "cmd_discover",
    "cmd_interactive",
    "cmd_replay",
]
