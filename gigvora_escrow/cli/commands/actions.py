"""Escrow mutation commands: accounts, transactions and disputes.

Input is validated with the payload models before anything is sent. Every
command goes through the session, so a successful write is followed by a
forced overview refresh.
"""

from typing import TYPE_CHECKING

from gigvora_escrow.cli.commands.helpers import code_label, format_money, optional_input, print_json, validate_input
from gigvora_escrow.payloads import (
    AccountMetadataPayload,
    AccountPayload,
    AccountSettingsPayload,
    AccountUpdatePayload,
    DisputeNotePayload,
    DisputePayload,
    SettlementPayload,
    TransactionPayload,
)

if TYPE_CHECKING:
    from gigvora_escrow.session import EscrowSession


def _print_outstanding(session: "EscrowSession"):
    m = session.metrics
    print(f"  Outstanding: {format_money(m.outstanding)} | Released: {format_money(m.released)}")


async def cmd_account(args, session: "EscrowSession"):
    """Create or update escrow accounts."""
    if args.account_action == "create":
        payload = AccountPayload.build(
            provider=args.provider,
            currency_code=args.currency,
            metadata=AccountMetadataPayload.build(account_label=optional_input(args.label, "label", 200)),
            settings=AccountSettingsPayload.build(
                manual_hold=args.manual_hold,
                auto_release_on_approval=args.auto_release,
            ),
        )
        account = await session.create_account(payload)
        if args.json:
            print_json(account.to_wire())
            return
        print(f"✓ Account created: [{account.id}] {account.label} ({code_label(account.provider)})")

    elif args.account_action == "update":
        settings = {}
        if args.manual_hold is not None:
            settings["manualHold"] = args.manual_hold
        if args.auto_release is not None:
            settings["autoReleaseOnApproval"] = args.auto_release
        metadata = None
        if args.label is not None:
            metadata = AccountMetadataPayload.build(account_label=validate_input(args.label, "label", 200))
        payload = AccountUpdatePayload.build(
            provider=args.provider,
            currency_code=args.currency,
            status=args.status,
            metadata=metadata,
            settings=settings or None,
        )
        account = await session.update_account(args.account_id, payload)
        if args.json:
            print_json(account.to_wire())
            return
        print(f"✓ Account updated: [{account.id}] {account.label} ({account.status.value})")


async def cmd_txn(args, session: "EscrowSession"):
    """Fund, release or refund escrow transactions."""
    if args.txn_action == "fund":
        payload = TransactionPayload.build(
            account_id=args.account,
            reference=validate_input(args.reference, "reference", 200),
            amount=args.amount,
            fee_amount=args.fee,
            counterparty_id=args.counterparty,
            milestone_label=optional_input(args.milestone, "milestone", 200),
            scheduled_release_at=args.release_at,
        )
        txn = await session.create_transaction(payload)
        if args.json:
            print_json(txn.to_wire())
            return
        print(
            f"✓ Funded [{txn.id}] {txn.reference}: "
            f"{format_money(txn.effective_net_amount, txn.currency_code)} net held in escrow"
        )
        _print_outstanding(session)

    elif args.txn_action in ("release", "refund"):
        payload = SettlementPayload.build(notes=optional_input(args.notes, "notes", 1000))
        if args.txn_action == "release":
            txn = await session.release_transaction(args.transaction_id, payload)
        else:
            txn = await session.refund_transaction(args.transaction_id, payload)
        if args.json:
            print_json(txn.to_wire())
            return
        print(f"✓ Transaction [{txn.id}] {txn.reference} is now {txn.status.value}")
        _print_outstanding(session)


async def cmd_dispute(args, session: "EscrowSession"):
    """Open disputes and add notes to their timelines."""
    if args.dispute_action == "open":
        payload = DisputePayload.build(
            reason_code=args.reason,
            priority=args.priority,
            summary=validate_input(args.summary, "summary", 2000),
        )
        dispute = await session.open_dispute(args.transaction_id, payload)
        if args.json:
            print_json(dispute.to_wire())
            return
        print(f"✓ Dispute [{dispute.id}] opened ({code_label(dispute.reason_code)}, {dispute.priority.value})")

    elif args.dispute_action == "note":
        payload = DisputeNotePayload.build(
            notes=validate_input(args.notes, "notes", 2000),
            stage=args.stage,
            status=args.status,
            transaction_resolution=args.resolution,
        )
        dispute = await session.append_dispute_event(args.dispute_id, payload)
        if args.json:
            print_json(dispute.to_wire())
            return
        print(
            f"✓ Dispute [{dispute.id}] updated: {dispute.stage.value}/{dispute.status.value},"
            f" {len(dispute.events)} events"
        )
