"""
IdentityLedger -- Ledger Error Taxonomy

Ledger operations return their failures; they do not raise them. Each failed
precondition maps to exactly one ErrorKind, carried in a LedgerResult.

LedgerError and its subclasses exist for callers that prefer exceptions
(LedgerResult.unwrap) and for failures outside any operation (a corrupt snapshot).

Reserved kinds (no operation produces them):
  INVALID_PROOF, INSUFFICIENT_ENDORSEMENTS, FRAGMENT_REVOKED, INVALID_TIMESTAMP
A revoked fragment fails verification as PROOF_EXPIRED.
"""

from __future__ import annotations

import enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ErrorKind(enum.StrEnum):
    NOT_AUTHORIZED = "not_authorized"
    INVALID_PROOF = "invalid_proof"
    PROOF_EXPIRED = "proof_expired"
    IDENTITY_NOT_FOUND = "identity_not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_ATTRIBUTE = "invalid_attribute"
    REPUTATION_TOO_LOW = "reputation_too_low"
    ORACLE_NOT_FOUND = "oracle_not_found"
    INSUFFICIENT_ENDORSEMENTS = "insufficient_endorsements"
    FRAGMENT_REVOKED = "fragment_revoked"
    INVALID_TIMESTAMP = "invalid_timestamp"

    @property
    def code(self) -> int:
        """Numeric error code as exposed on the wire (u100..u110)."""
        return ERROR_CODES[self]


ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHORIZED: 100,
    ErrorKind.INVALID_PROOF: 101,
    ErrorKind.PROOF_EXPIRED: 102,
    ErrorKind.IDENTITY_NOT_FOUND: 103,
    ErrorKind.ALREADY_EXISTS: 104,
    ErrorKind.INVALID_ATTRIBUTE: 105,
    ErrorKind.REPUTATION_TOO_LOW: 106,
    ErrorKind.ORACLE_NOT_FOUND: 107,
    ErrorKind.INSUFFICIENT_ENDORSEMENTS: 108,
    ErrorKind.FRAGMENT_REVOKED: 109,
    ErrorKind.INVALID_TIMESTAMP: 110,
}


class LedgerError(RuntimeError):
    """Base for all ledger exceptions."""


class OperationFailed(LedgerError):
    """Raised by LedgerResult.unwrap when the operation returned an error kind."""

    def __init__(self, kind: ErrorKind) -> None:
        self.kind = kind
        super().__init__(f"{kind.value} (u{kind.code})")


class SnapshotError(LedgerError):
    """
    A snapshot could not be restored: its counters disagree with its records.

    Recovery: none; the snapshot is rejected and no ledger is built.
    """


class LedgerResult(BaseModel, Generic[T]):
    """Outcome of one ledger operation: a value or a single error kind."""

    value: T | None = None
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = True) -> LedgerResult[Any]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind) -> LedgerResult[Any]:
        return cls(error=kind)

    def unwrap(self) -> T:
        """Return the value or raise OperationFailed with the failing kind."""
        if self.error is not None:
            raise OperationFailed(self.error)
        return self.value  # type: ignore[return-value]
