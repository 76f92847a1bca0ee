"""
IdentityLedger -- Ledger State

The six keyed record collections plus the singleton counters and settings.
A LedgerState is owned by exactly one LedgerService; independent ledgers never
share state, so tests can build as many as they like.

Counter allocation lives here so the id and the record it numbers are always
written together by the caller holding the ledger lock.
"""

from __future__ import annotations

from typing import Any

import structlog

from identity_ledger.primitives.common import ActorId, saturating_add
from identity_ledger.primitives.ledger import (
    DEFAULT_PLATFORM_FEE,
    AttributeType,
    Endorsement,
    IdentityFragment,
    LedgerSnapshot,
    Oracle,
    PlatformStats,
    ProofVerification,
    UserIdentity,
)
from identity_ledger.systems.ledger.errors import SnapshotError

logger = structlog.get_logger("identity_ledger.systems.ledger.state")


class LedgerState:
    def __init__(self, contract_owner: ActorId, platform_fee: int = DEFAULT_PLATFORM_FEE) -> None:
        self.contract_owner = contract_owner

        # Record collections
        self.identities: dict[ActorId, UserIdentity] = {}
        self.fragments: dict[int, IdentityFragment] = {}
        self.verifications: dict[int, ProofVerification] = {}
        self.oracles: dict[int, Oracle] = {}
        self.endorsements: dict[int, Endorsement] = {}
        self.attribute_types: dict[str, AttributeType] = {}

        # Counters (last id handed out; 0 = none yet)
        self.fragment_counter = 0
        self.proof_counter = 0
        self.endorsement_counter = 0
        self.oracle_count = 0

        # Platform settings and reporting
        self.platform_fee = platform_fee
        self.total_proofs_generated = 0
        self.total_verifications = 0

    # ─── Id Allocation ──────────────────────────────────────────────

    def next_fragment_id(self) -> int:
        self.fragment_counter += 1
        return self.fragment_counter

    def next_proof_id(self) -> int:
        self.proof_counter += 1
        return self.proof_counter

    def next_endorsement_id(self) -> int:
        self.endorsement_counter += 1
        return self.endorsement_counter

    def next_oracle_id(self) -> int:
        self.oracle_count += 1
        return self.oracle_count

    # ─── Reporting ──────────────────────────────────────────────────

    def platform_stats(self) -> PlatformStats:
        return PlatformStats(
            total_proofs=self.total_proofs_generated,
            total_verifications=self.total_verifications,
            oracle_count=self.oracle_count,
            platform_fee=self.platform_fee,
        )

    def bump_proofs_generated(self) -> None:
        self.total_proofs_generated = saturating_add(self.total_proofs_generated, 1)

    def bump_verifications(self) -> None:
        self.total_verifications = saturating_add(self.total_verifications, 1)

    # ─── Snapshots ──────────────────────────────────────────────────

    def to_snapshot(self) -> LedgerSnapshot:
        """Deep copy of the entire state as a single model."""
        return LedgerSnapshot(
            contract_owner=self.contract_owner,
            fragment_counter=self.fragment_counter,
            proof_counter=self.proof_counter,
            endorsement_counter=self.endorsement_counter,
            oracle_count=self.oracle_count,
            platform_fee=self.platform_fee,
            total_proofs_generated=self.total_proofs_generated,
            total_verifications=self.total_verifications,
            identities={k: v.model_copy() for k, v in self.identities.items()},
            fragments={k: v.model_copy() for k, v in self.fragments.items()},
            verifications={k: v.model_copy() for k, v in self.verifications.items()},
            oracles={k: v.model_copy() for k, v in self.oracles.items()},
            endorsements={k: v.model_copy() for k, v in self.endorsements.items()},
            attribute_types={k: v.model_copy() for k, v in self.attribute_types.items()},
        )

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> LedgerState:
        """
        Rebuild state from a snapshot.

        Every stored id must fall inside its counter's range, otherwise the
        next allocation could collide with an existing record.
        """
        _check_ids("fragment", snapshot.fragments, snapshot.fragment_counter)
        _check_ids("proof", snapshot.verifications, snapshot.proof_counter)
        _check_ids("endorsement", snapshot.endorsements, snapshot.endorsement_counter)
        _check_ids("oracle", snapshot.oracles, snapshot.oracle_count)

        for fragment_id, fragment in snapshot.fragments.items():
            if fragment.owner not in snapshot.identities:
                raise SnapshotError(
                    f"fragment {fragment_id} is owned by {fragment.owner!r}, "
                    "who has no identity"
                )

        for proof_id, verification in snapshot.verifications.items():
            if verification.fragment_id not in snapshot.fragments:
                raise SnapshotError(
                    f"proof {proof_id} refers to unknown fragment {verification.fragment_id}"
                )

        state = cls(snapshot.contract_owner, platform_fee=snapshot.platform_fee)
        state.fragment_counter = snapshot.fragment_counter
        state.proof_counter = snapshot.proof_counter
        state.endorsement_counter = snapshot.endorsement_counter
        state.oracle_count = snapshot.oracle_count
        state.total_proofs_generated = snapshot.total_proofs_generated
        state.total_verifications = snapshot.total_verifications
        state.identities = {k: v.model_copy() for k, v in snapshot.identities.items()}
        state.fragments = {k: v.model_copy() for k, v in snapshot.fragments.items()}
        state.verifications = {k: v.model_copy() for k, v in snapshot.verifications.items()}
        state.oracles = {k: v.model_copy() for k, v in snapshot.oracles.items()}
        state.endorsements = {k: v.model_copy() for k, v in snapshot.endorsements.items()}
        state.attribute_types = {k: v.model_copy() for k, v in snapshot.attribute_types.items()}

        logger.info(
            "ledger_state_restored",
            identities=len(state.identities),
            fragments=len(state.fragments),
            oracles=len(state.oracles),
        )
        return state

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "identities": len(self.identities),
            "fragments": len(self.fragments),
            "verifications": len(self.verifications),
            "oracles": len(self.oracles),
            "endorsements": len(self.endorsements),
            "attribute_types": len(self.attribute_types),
        }


def _check_ids(kind: str, records: dict[int, Any], counter: int) -> None:
    for record_id in records:
        if record_id < 1 or record_id > counter:
            raise SnapshotError(
                f"{kind} id {record_id} outside allocated range 1..{counter}"
            )
