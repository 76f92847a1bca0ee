"""
IdentityLedger — Ledger System

The ledger state machine: identity lifecycles, fragment verification and
revocation, endorsements, oracles, and the owner-curated attribute registry.
"""

from identity_ledger.systems.ledger.clock import LogicalClock, ManualClock
from identity_ledger.systems.ledger.errors import (
    ErrorKind,
    LedgerError,
    LedgerResult,
    OperationFailed,
    SnapshotError,
)
from identity_ledger.systems.ledger.service import LedgerService
from identity_ledger.systems.ledger.state import LedgerState

__all__ = [
    "ErrorKind",
    "LedgerError",
    "LedgerResult",
    "LedgerService",
    "LedgerState",
    "LogicalClock",
    "ManualClock",
    "OperationFailed",
    "SnapshotError",
]
