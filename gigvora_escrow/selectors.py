"""Derived views over an escrow overview, shared by every panel."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from gigvora_escrow.models import (
    DISPUTABLE_TRANSACTION_STATUSES,
    ActivityEntry,
    EntityId,
    EscrowAccount,
    EscrowOverview,
    EscrowTransaction,
    TransactionStatus,
)

RELEASE = "release"
REFUND = "refund"
DISPUTE = "dispute"


def activity_feed(
    entries: Iterable[ActivityEntry], transaction_id: Optional[EntityId] = None
) -> List[ActivityEntry]:
    """Activity newest first, optionally for one transaction.

    Entries without a timestamp go last, in their original order.
    """
    entries = list(entries)
    if transaction_id is not None:
        wanted = str(transaction_id)
        entries = [e for e in entries if e.transaction_id is not None and str(e.transaction_id) == wanted]

    dated = [e for e in entries if e.occurred_at is not None]
    undated = [e for e in entries if e.occurred_at is None]
    dated.sort(key=lambda e: e.occurred_at, reverse=True)
    return dated + undated


def has_active_dispute(transaction: EscrowTransaction, overview: Optional[EscrowOverview] = None) -> bool:
    if any(d.is_active for d in transaction.disputes):
        return True
    if overview is None:
        return False
    wanted = str(transaction.id)
    return any(
        d.is_active for d in overview.disputes if d.transaction_id is not None and str(d.transaction_id) == wanted
    )


def available_actions(
    transaction: EscrowTransaction, overview: Optional[EscrowOverview] = None
) -> Tuple[str, ...]:
    """Actions the transaction menu should offer.

    Release and refund disappear once the transaction is terminal; release
    also needs ``release_eligible``. A dispute can be opened from funded,
    in-escrow or disputed transactions that have no active dispute.
    """
    actions = []
    if not transaction.is_terminal:
        if transaction.release_eligible:
            actions.append(RELEASE)
        actions.append(REFUND)
    if transaction.status in DISPUTABLE_TRANSACTION_STATUSES and not has_active_dispute(transaction, overview):
        actions.append(DISPUTE)
    return tuple(actions)


def dispute_eligible_transactions(overview: EscrowOverview) -> List[EscrowTransaction]:
    return [
        txn
        for txn in overview.transactions
        if txn.status in DISPUTABLE_TRANSACTION_STATUSES and not has_active_dispute(txn, overview)
    ]


@dataclass(frozen=True)
class AccountSummary:
    """Per-account figures for the accounts panel."""

    account: EscrowAccount
    transaction_count: int
    held: Decimal
    released: Decimal
    refunded: Decimal
    disputed: int


def account_summary(overview: EscrowOverview) -> List[AccountSummary]:
    """Totals per account, from the transactions listed in the overview."""
    summaries = []
    for account in overview.accounts:
        wanted = str(account.id)
        txns = [t for t in overview.transactions if t.account_id is not None and str(t.account_id) == wanted]
        summaries.append(
            AccountSummary(
                account=account,
                transaction_count=len(txns),
                held=sum(
                    (t.effective_net_amount for t in txns if t.status in DISPUTABLE_TRANSACTION_STATUSES),
                    Decimal("0"),
                ),
                released=sum(
                    (t.effective_net_amount for t in txns if t.status == TransactionStatus.RELEASED),
                    Decimal("0"),
                ),
                refunded=sum(
                    (t.effective_net_amount for t in txns if t.status == TransactionStatus.REFUNDED),
                    Decimal("0"),
                ),
                disputed=sum(1 for t in txns if t.status == TransactionStatus.DISPUTED),
            )
        )
    return summaries
