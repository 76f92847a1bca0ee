"""
IdentityLedger — Common Primitives

Shared base model, scalar bounds, and argument checks used across the ledger.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

# Actors are opaque comparable tokens (a signer address in a chain host).
ActorId = str

# ─── Scalar Bounds ────────────────────────────────────────────────

UINT_MAX = 2**128 - 1
HASH_LENGTH = 32
MAX_NAME_LENGTH = 50

# Field types for stored records; loaded snapshots are held to them.
Uint = Annotated[int, Field(ge=0, le=UINT_MAX)]
Hash32 = Annotated[bytes, Field(min_length=HASH_LENGTH, max_length=HASH_LENGTH)]


def saturating_add(a: int, b: int) -> int:
    """Unsigned addition clamped at UINT_MAX."""
    return min(a + b, UINT_MAX)


# ─── Argument Checks ──────────────────────────────────────────────
# Type-level violations are rejected before any state is read, the same way
# a host rejects an ill-typed call. They raise ValueError, not a ledger error.


def check_uint(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an unsigned integer, got {type(value).__name__}")
    if value < 0 or value > UINT_MAX:
        raise ValueError(f"{name} out of range: {value}")
    return value


def check_hash(name: str, value: bytes) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_LENGTH:
        raise ValueError(f"{name} must be exactly {HASH_LENGTH} bytes")
    return bytes(value)


def check_name(name: str, value: str, max_length: int = MAX_NAME_LENGTH) -> str:
    if not isinstance(value, str) or len(value) > max_length:
        raise ValueError(f"{name} must be a string of at most {max_length} characters")
    return value


def check_actor(name: str, value: ActorId) -> ActorId:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty actor identifier")
    return value


# ─── Base Models ──────────────────────────────────────────────────


class LedgerBaseModel(BaseModel):
    """Base model for all ledger records. Hash blobs travel as base64 in JSON."""

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
        "ser_json_bytes": "base64",
        "val_json_bytes": "base64",
    }
