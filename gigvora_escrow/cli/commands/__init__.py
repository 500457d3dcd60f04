"""CLI command modules for the escrow client.

Each module contains related command handlers used by __main__.py.
"""

from gigvora_escrow.cli.commands.actions import cmd_account, cmd_dispute, cmd_txn
from gigvora_escrow.cli.commands.overview import cmd_activity, cmd_overview, cmd_queue

__all__ = [
    "cmd_account",
    "cmd_activity",
    "cmd_dispute",
    "cmd_overview",
    "cmd_queue",
    "cmd_txn",
]
