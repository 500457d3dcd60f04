"""In-memory escrow backend for tests and local development."""

from gigvora_escrow.testing.ledger import (
    InMemoryEscrowLedger,
    LedgerConflictError,
    LedgerError,
    LedgerNotFoundError,
    LedgerValidationError,
)
from gigvora_escrow.testing.transport import LedgerTransport, ledger_transport

__all__ = [
    "InMemoryEscrowLedger",
    "LedgerConflictError",
    "LedgerError",
    "LedgerNotFoundError",
    "LedgerValidationError",
    "LedgerTransport",
    "ledger_transport",
]
