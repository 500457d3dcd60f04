"""Read-only escrow commands: overview, release queue and activity."""

import logging
import sys
from typing import TYPE_CHECKING

from gigvora_escrow.aggregator import OverviewState
from gigvora_escrow.cli.commands.helpers import code_label, format_money, print_json
from gigvora_escrow.selectors import activity_feed, available_actions

if TYPE_CHECKING:
    from gigvora_escrow.session import EscrowSession

logger = logging.getLogger(__name__)


async def _load(session: "EscrowSession"):
    snapshot = await session.load()
    if snapshot.state == OverviewState.FAILED:
        logger.error(f"Could not load escrow overview: {snapshot.error}")
        sys.exit(1)
    if snapshot.state == OverviewState.STALE:
        logger.warning(f"Showing stale escrow data: {snapshot.error}")
    return snapshot


async def cmd_overview(args, session: "EscrowSession"):
    """Show metrics, accounts and transactions."""
    snapshot = await _load(session)
    overview = snapshot.overview

    if args.json:
        print_json(overview.to_wire())
        return

    if snapshot.state == OverviewState.EMPTY:
        print("No escrow data. Pass --freelancer or set GIGVORA_FREELANCER_ID.")
        return

    m = overview.metrics
    print("Escrow overview")
    print("=" * 40)
    print(f"  Accounts:     {m.total_accounts}")
    print(f"  Gross volume: {format_money(m.gross_volume)}")
    print(f"  Net volume:   {format_money(m.net_volume)}")
    print(f"  Outstanding:  {format_money(m.outstanding)}")
    print(f"  Released:     {format_money(m.released)}")
    print(f"  Refunded:     {format_money(m.refunded)}")
    print(f"  Disputed:     {m.disputed_count}")
    if m.average_release_days is not None:
        print(f"  Avg release:  {m.average_release_days:.1f} days")

    if overview.accounts:
        print()
        print(f"Accounts ({len(overview.accounts)}):")
        for account in overview.accounts:
            print(
                f"  [{account.id}] {account.label} ({code_label(account.provider)}, {account.status.value})"
                f" balance {format_money(account.current_balance, account.currency_code)}"
            )

    if overview.transactions:
        print()
        print(f"Transactions ({len(overview.transactions)}):")
        for txn in overview.transactions:
            actions = ", ".join(available_actions(txn, overview)) or "none"
            print(
                f"  [{txn.id}] {txn.reference} {txn.status.value}"
                f" net {format_money(txn.effective_net_amount, txn.currency_code)}"
                f" | actions: {actions}"
            )


async def cmd_queue(args, session: "EscrowSession"):
    """Show transactions awaiting release, earliest first."""
    snapshot = await _load(session)
    queue = snapshot.overview.release_queue

    if args.json:
        print_json([txn.to_wire() for txn in queue])
        return

    if not queue:
        print("Release queue is empty.")
        return

    print(f"Release queue ({len(queue)}):")
    for txn in queue:
        due = txn.release_at.strftime("%Y-%m-%d") if txn.release_at else "unscheduled"
        hold = "" if txn.release_eligible else " [on hold]"
        label = txn.milestone_label or txn.reference
        print(f"  {due}  [{txn.id}] {label} {format_money(txn.effective_net_amount, txn.currency_code)}{hold}")


async def cmd_activity(args, session: "EscrowSession"):
    """Show the activity log, newest first."""
    snapshot = await _load(session)
    entries = activity_feed(snapshot.overview.activity_log, args.transaction)

    if args.json:
        print_json([entry.to_wire() for entry in entries])
        return

    if not entries:
        print("No escrow activity.")
        return

    print(f"Activity ({len(entries)}):")
    for entry in entries:
        when = entry.occurred_at.strftime("%Y-%m-%d %H:%M") if entry.occurred_at else "-"
        line = f"  {when}  {entry.action}"
        if entry.reference:
            line += f" {entry.reference}"
        if entry.notes:
            line += f" - {entry.notes}"
        print(line)
