"""
Gigvora escrow CLI - operator view of a freelancer's escrow.

Usage:
    gigvora-escrow overview [--status S] [--json]
    gigvora-escrow queue [--json]
    gigvora-escrow activity [--transaction ID] [--json]
    gigvora-escrow account create --provider P [--currency C] [--label L]
    gigvora-escrow account update ID [--status S] [--label L]
    gigvora-escrow txn fund --account ID --reference R --amount A [--fee F]
    gigvora-escrow txn release|refund ID [--notes N]
    gigvora-escrow dispute open TXN_ID --reason R --summary S
    gigvora-escrow dispute note DISPUTE_ID NOTES [--stage S] [--status S]

The freelancer comes from --freelancer or GIGVORA_FREELANCER_ID; the API from
GIGVORA_API_BASE_URL and GIGVORA_AUTH_TOKEN.
"""

import argparse
import asyncio
import logging
import sys

from gigvora_escrow.cache import OverviewCache
from gigvora_escrow.cli.commands import (
    cmd_account,
    cmd_activity,
    cmd_dispute,
    cmd_overview,
    cmd_queue,
    cmd_txn,
)
from gigvora_escrow.cli.commands.helpers import validate_input
from gigvora_escrow.client import EscrowClient
from gigvora_escrow.config import EscrowSettings, get_settings
from gigvora_escrow.errors import EscrowError, EscrowTransportError
from gigvora_escrow.models import (
    AccountProvider,
    AccountStatus,
    DisputePriority,
    DisputeReason,
    DisputeStage,
    DisputeStatus,
    TransactionStatus,
)
from gigvora_escrow.session import EscrowSession

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

COMMANDS = {
    "overview": cmd_overview,
    "queue": cmd_queue,
    "activity": cmd_activity,
    "account": cmd_account,
    "txn": cmd_txn,
    "dispute": cmd_dispute,
}


def _values(enum_cls):
    return [member.value for member in enum_cls]


def build_client(settings: EscrowSettings) -> EscrowClient:
    return EscrowClient(settings=settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gigvora-escrow",
        description="Freelancer escrow overview and actions",
    )
    parser.add_argument("--freelancer", "-f", help="Freelancer ID", default=None)
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests and cache activity")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # overview
    p_overview = subparsers.add_parser("overview", help="Show escrow metrics and transactions")
    p_overview.add_argument("--status", "-s", choices=_values(TransactionStatus))
    p_overview.add_argument("--json", "-j", action="store_true")

    # queue
    p_queue = subparsers.add_parser("queue", help="Show the release queue")
    p_queue.add_argument("--json", "-j", action="store_true")

    # activity
    p_activity = subparsers.add_parser("activity", help="Show escrow activity")
    p_activity.add_argument("--transaction", "-t", help="Only this transaction")
    p_activity.add_argument("--json", "-j", action="store_true")

    # account
    p_account = subparsers.add_parser("account", help="Manage escrow accounts")
    account_sub = p_account.add_subparsers(dest="account_action", required=True)

    account_create = account_sub.add_parser("create", help="Create an escrow account")
    account_create.add_argument("--provider", "-p", required=True, choices=_values(AccountProvider))
    account_create.add_argument("--currency", "-c", default="USD")
    account_create.add_argument("--label", "-l")
    account_create.add_argument("--manual-hold", action="store_true", help="Hold releases until cleared")
    account_create.add_argument("--auto-release", action="store_true", help="Release on approval")
    account_create.add_argument("--json", "-j", action="store_true")

    account_update = account_sub.add_parser("update", help="Update an escrow account")
    account_update.add_argument("account_id", help="Account ID")
    account_update.add_argument("--provider", "-p", choices=_values(AccountProvider))
    account_update.add_argument("--currency", "-c")
    account_update.add_argument("--status", "-s", choices=_values(AccountStatus))
    account_update.add_argument("--label", "-l")
    account_update.add_argument(
        "--manual-hold", dest="manual_hold", action="store_true", default=None
    )
    account_update.add_argument("--no-manual-hold", dest="manual_hold", action="store_false", default=None)
    account_update.add_argument(
        "--auto-release", dest="auto_release", action="store_true", default=None
    )
    account_update.add_argument("--no-auto-release", dest="auto_release", action="store_false", default=None)
    account_update.add_argument("--json", "-j", action="store_true")

    # txn
    p_txn = subparsers.add_parser("txn", help="Fund, release or refund transactions")
    txn_sub = p_txn.add_subparsers(dest="txn_action", required=True)

    txn_fund = txn_sub.add_parser("fund", help="Fund a new escrow transaction")
    txn_fund.add_argument("--account", "-a", required=True, help="Account ID")
    txn_fund.add_argument("--reference", "-r", required=True)
    txn_fund.add_argument("--amount", required=True, help="Gross amount")
    txn_fund.add_argument("--fee", default="0", help="Fee withheld from the gross amount")
    txn_fund.add_argument("--counterparty", help="Counterparty ID")
    txn_fund.add_argument("--milestone", "-m", help="Milestone label")
    txn_fund.add_argument("--release-at", dest="release_at", help="Scheduled release (ISO 8601)")
    txn_fund.add_argument("--json", "-j", action="store_true")

    for action in ("release", "refund"):
        p = txn_sub.add_parser(action, help=f"{action.capitalize()} a transaction")
        p.add_argument("transaction_id", help="Transaction ID")
        p.add_argument("--notes", "-n")
        p.add_argument("--json", "-j", action="store_true")

    # dispute
    p_dispute = subparsers.add_parser("dispute", help="Open and update disputes")
    dispute_sub = p_dispute.add_subparsers(dest="dispute_action", required=True)

    dispute_open = dispute_sub.add_parser("open", help="Open a dispute on a transaction")
    dispute_open.add_argument("transaction_id", help="Transaction ID")
    dispute_open.add_argument("--reason", "-r", required=True, choices=_values(DisputeReason))
    dispute_open.add_argument("--summary", "-s", required=True)
    dispute_open.add_argument("--priority", "-p", default="medium", choices=_values(DisputePriority))
    dispute_open.add_argument("--json", "-j", action="store_true")

    dispute_note = dispute_sub.add_parser("note", help="Add a note to a dispute")
    dispute_note.add_argument("dispute_id", help="Dispute ID")
    dispute_note.add_argument("notes", help="Note text")
    dispute_note.add_argument("--stage", choices=_values(DisputeStage))
    dispute_note.add_argument("--status", choices=_values(DisputeStatus))
    dispute_note.add_argument("--resolution", choices=["release", "refund"], help="Settle the transaction")
    dispute_note.add_argument("--json", "-j", action="store_true")

    return parser


async def _run(args, settings: EscrowSettings, freelancer_id):
    async with build_client(settings) as client:
        filters = {"status": args.status} if args.command == "overview" and args.status else None
        session = EscrowSession(
            client,
            freelancer_id,
            cache=OverviewCache(settings.overview_ttl_seconds),
            filters=filters,
        )
        await COMMANDS[args.command](args, session)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("gigvora_escrow").setLevel(logging.DEBUG)

    try:
        settings = get_settings()
        freelancer_id = args.freelancer or settings.freelancer_id
        if freelancer_id is not None:
            freelancer_id = validate_input(freelancer_id, "freelancer_id", 100).strip() or None
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        asyncio.run(_run(args, settings, freelancer_id))
    except EscrowTransportError as e:
        status = f" ({e.status_code})" if e.status_code else ""
        logger.error(f"Escrow request failed{status}: {e}")
        sys.exit(1)
    except (EscrowError, ValueError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.error("Aborted")
        sys.exit(130)


if __name__ == "__main__":
    main()
