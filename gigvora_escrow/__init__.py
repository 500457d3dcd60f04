"""
Gigvora escrow - client core for the freelancer escrow panels.

One overview read path with a per-freelancer cache, one write path that
refreshes after every mutation, and the session that binds them.
"""

from .aggregator import EscrowOverviewAggregator, OverviewSnapshot, OverviewState
from .cache import OverviewCache
from .client import EscrowClient
from .dispatcher import ActionState, ActionStatus, EscrowActionDispatcher
from .errors import (
    EscrowError,
    EscrowResponseError,
    EscrowTransportError,
    MissingFreelancerContextError,
    OverviewDecodeError,
    PayloadValidationError,
)
from .models import EMPTY_OVERVIEW, EscrowOverview
from .session import EscrowSession

try:
    from importlib.metadata import version

    __version__ = version("gigvora-escrow")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "ActionState",
    "ActionStatus",
    "EMPTY_OVERVIEW",
    "EscrowActionDispatcher",
    "EscrowClient",
    "EscrowError",
    "EscrowOverview",
    "EscrowOverviewAggregator",
    "EscrowResponseError",
    "EscrowSession",
    "EscrowTransportError",
    "MissingFreelancerContextError",
    "OverviewCache",
    "OverviewDecodeError",
    "OverviewSnapshot",
    "OverviewState",
    "PayloadValidationError",
]
