"""
IdentityLedger — Ledger Record Types

Every record the ledger stores. Identifiers are assigned by the ledger,
dense and starting at 1. Timestamps are logical clock values (block heights),
not wall-clock datetimes.
"""

from __future__ import annotations

from pydantic import Field

from identity_ledger.primitives.common import ActorId, Hash32, LedgerBaseModel, Uint

DEFAULT_PLATFORM_FEE = 100
DEFAULT_ORACLE_REPUTATION = 100
ENDORSEMENT_REPUTATION_THRESHOLD = 50


# ─── Identities & Fragments ──────────────────────────────────────


class UserIdentity(LedgerBaseModel):
    """One per actor. Created explicitly, never deleted."""

    total_fragments: Uint = 0
    reputation_score: Uint = 0       # Only ever increases
    endorsement_count: Uint = 0
    created_at: Uint = 0
    last_activity_at: Uint = 0


class IdentityFragment(LedgerBaseModel):
    """
    A time-bounded proof commitment for one attribute.

    The proof hash is opaque: the ledger stores and compares it, never
    interprets it. A fragment is valid while unrevoked and before expiry.
    """

    owner: ActorId
    attribute_type: str
    proof_hash: Hash32
    created_at: Uint
    expires_at: Uint
    revoked: bool = False
    verification_count: Uint = 0
    fragment_reputation: Uint = 0

    def is_valid_at(self, clock: int) -> bool:
        return not self.revoked and clock < self.expires_at


class ProofVerification(LedgerBaseModel):
    """Append-only audit record of one verify-fragment call."""

    fragment_id: Uint
    verifier: ActorId
    verified_at: Uint
    attribute_confirmed: bool
    verification_score: Uint


# ─── Oracles & Endorsements ──────────────────────────────────────


class Oracle(LedgerBaseModel):
    oracle_address: ActorId
    reputation: Uint = DEFAULT_ORACLE_REPUTATION
    total_validations: Uint = 0
    active: bool = True
    registered_at: Uint = 0


class Endorsement(LedgerBaseModel):
    """
    An anonymised reputation contribution.

    Only the caller-supplied endorser hash is kept; the endorsing actor's
    identifier never enters the record.
    """

    endorser_hash: Hash32
    endorsed_user: ActorId
    attribute_type: str
    weight: Uint
    timestamp: Uint


# ─── Registry & Platform ─────────────────────────────────────────


class AttributeType(LedgerBaseModel):
    # min_reputation and verification_required are recorded for the registry
    # but no operation enforces them.
    enabled: bool = True
    min_reputation: Uint = 0
    verification_required: bool = False


class PlatformStats(LedgerBaseModel):
    """Reporting counters. None of them gates an operation."""

    total_proofs: Uint = 0
    total_verifications: Uint = 0
    oracle_count: Uint = 0
    platform_fee: Uint = DEFAULT_PLATFORM_FEE


class LedgerSnapshot(LedgerBaseModel):
    """Full JSON-serialisable image of a ledger's state."""

    contract_owner: ActorId
    fragment_counter: Uint = 0
    proof_counter: Uint = 0
    endorsement_counter: Uint = 0
    oracle_count: Uint = 0
    platform_fee: Uint = DEFAULT_PLATFORM_FEE
    total_proofs_generated: Uint = 0
    total_verifications: Uint = 0
    identities: dict[ActorId, UserIdentity] = Field(default_factory=dict)
    fragments: dict[int, IdentityFragment] = Field(default_factory=dict)
    verifications: dict[int, ProofVerification] = Field(default_factory=dict)
    oracles: dict[int, Oracle] = Field(default_factory=dict)
    endorsements: dict[int, Endorsement] = Field(default_factory=dict)
    attribute_types: dict[str, AttributeType] = Field(default_factory=dict)
