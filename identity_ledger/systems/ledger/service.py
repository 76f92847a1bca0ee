"""
IdentityLedger -- Ledger Service

The ledger state machine. Each operation is a single atomic step:

  read state -> check preconditions in order -> apply every mutation

The first failing precondition decides the ErrorKind and nothing is written.
Mutations are only applied after the last check, so there is never anything
to roll back.

Every operation takes the calling actor explicitly; there is no ambient
"current caller". Time comes from the injected LogicalClock.

Reputation arithmetic:
  verify_fragment            fragment += score; owner += score iff confirmed
  oracle_validate_fragment   fragment += score; owner untouched
  create_endorsement         endorsed user += weight
All sums saturate at UINT_MAX. Reputation never decreases.

Thread-safety: every operation holds a re-entrant lock for its full duration,
so hosts may call from several threads.
"""

from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import Any

import structlog

from identity_ledger.config import LedgerConfig
from identity_ledger.primitives.common import (
    ActorId,
    check_actor,
    check_hash,
    check_name,
    check_uint,
    saturating_add,
)
from identity_ledger.primitives.ledger import (
    AttributeType,
    Endorsement,
    IdentityFragment,
    LedgerSnapshot,
    Oracle,
    PlatformStats,
    ProofVerification,
    UserIdentity,
)
from identity_ledger.systems.ledger.clock import LogicalClock, ManualClock
from identity_ledger.systems.ledger.errors import ErrorKind, LedgerResult
from identity_ledger.systems.ledger.state import LedgerState

logger = structlog.get_logger("identity_ledger.systems.ledger.service")


class LedgerService:
    """
    Identity-and-reputation ledger.

    Owns one LedgerState. The contract owner is fixed at construction and
    gates oracle management, the attribute registry and the platform fee.
    """

    def __init__(
        self,
        contract_owner: ActorId,
        clock: LogicalClock | None = None,
        config: LedgerConfig | None = None,
        state: LedgerState | None = None,
    ) -> None:
        self._config = config or LedgerConfig()
        self._clock: LogicalClock = clock or ManualClock()
        check_actor("contract_owner", contract_owner)
        if state is not None and state.contract_owner != contract_owner:
            raise ValueError("state belongs to a different contract owner")
        self._state = state or LedgerState(
            contract_owner, platform_fee=self._config.default_platform_fee
        )
        self._lock = threading.RLock()
        self._logger = logger.bind(component="ledger_service")

    @property
    def contract_owner(self) -> ActorId:
        return self._state.contract_owner

    @property
    def clock(self) -> LogicalClock:
        return self._clock

    # ─── Identity Lifecycle ─────────────────────────────────────────

    def initialize_identity(self, actor: ActorId) -> LedgerResult[bool]:
        check_actor("actor", actor)
        with self._lock:
            if actor in self._state.identities:
                return self._reject("initialize_identity", ErrorKind.ALREADY_EXISTS, actor=actor)

            now = self._clock.now()
            self._state.identities[actor] = UserIdentity(
                created_at=now,
                last_activity_at=now,
            )
            self._logger.info("identity_initialized", actor=actor, clock=now)
            return LedgerResult.success(True)

    # ─── Fragments ──────────────────────────────────────────────────

    def create_fragment(
        self,
        actor: ActorId,
        attribute_type: str,
        proof_hash: bytes,
        validity_blocks: int,
    ) -> LedgerResult[int]:
        """
        Attach a new expiring fragment to the caller's identity.

        The attribute type must be registered and enabled. Its
        min_reputation and verification_required are not consulted.
        """
        check_actor("actor", actor)
        check_name("attribute_type", attribute_type, self._config.max_name_length)
        proof_hash = check_hash("proof_hash", proof_hash)
        check_uint("validity_blocks", validity_blocks)

        with self._lock:
            identity = self._state.identities.get(actor)
            if identity is None:
                return self._reject("create_fragment", ErrorKind.IDENTITY_NOT_FOUND, actor=actor)
            if not self._attribute_enabled(attribute_type):
                return self._reject(
                    "create_fragment",
                    ErrorKind.INVALID_ATTRIBUTE,
                    actor=actor,
                    attribute_type=attribute_type,
                )

            now = self._clock.now()
            fragment_id = self._state.next_fragment_id()
            self._state.fragments[fragment_id] = IdentityFragment(
                owner=actor,
                attribute_type=attribute_type,
                proof_hash=proof_hash,
                created_at=now,
                expires_at=saturating_add(now, validity_blocks),
            )
            identity.total_fragments = saturating_add(identity.total_fragments, 1)
            identity.last_activity_at = now
            self._state.bump_proofs_generated()

            self._logger.info(
                "fragment_created",
                fragment_id=fragment_id,
                owner=actor,
                attribute_type=attribute_type,
                expires_at=self._state.fragments[fragment_id].expires_at,
            )
            return LedgerResult.success(fragment_id)

    def verify_fragment(
        self,
        actor: ActorId,
        fragment_id: int,
        attribute_confirmed: bool,
        verification_score: int,
    ) -> LedgerResult[int]:
        """
        Record a verification of a fragment by any actor.

        The score always accrues to the fragment. It accrues to the owner's
        identity only when the attribute was confirmed. Revoked and expired
        fragments both fail as PROOF_EXPIRED.
        """
        check_actor("actor", actor)
        check_uint("fragment_id", fragment_id)
        check_uint("verification_score", verification_score)

        with self._lock:
            now = self._clock.now()
            fragment = self._state.fragments.get(fragment_id)
            if fragment is None:
                return self._reject(
                    "verify_fragment", ErrorKind.IDENTITY_NOT_FOUND, fragment_id=fragment_id
                )
            if not fragment.is_valid_at(now):
                return self._reject(
                    "verify_fragment",
                    ErrorKind.PROOF_EXPIRED,
                    fragment_id=fragment_id,
                    revoked=fragment.revoked,
                    expires_at=fragment.expires_at,
                )
            owner_identity = self._state.identities.get(fragment.owner)
            if owner_identity is None:
                return self._reject(
                    "verify_fragment", ErrorKind.IDENTITY_NOT_FOUND, owner=fragment.owner
                )

            proof_id = self._state.next_proof_id()
            self._state.verifications[proof_id] = ProofVerification(
                fragment_id=fragment_id,
                verifier=actor,
                verified_at=now,
                attribute_confirmed=attribute_confirmed,
                verification_score=verification_score,
            )
            fragment.verification_count = saturating_add(fragment.verification_count, 1)
            fragment.fragment_reputation = saturating_add(
                fragment.fragment_reputation, verification_score
            )
            if attribute_confirmed:
                owner_identity.reputation_score = saturating_add(
                    owner_identity.reputation_score, verification_score
                )
                owner_identity.last_activity_at = now
            self._state.bump_verifications()

            self._logger.info(
                "fragment_verified",
                proof_id=proof_id,
                fragment_id=fragment_id,
                verifier=actor,
                confirmed=attribute_confirmed,
                score=verification_score,
            )
            return LedgerResult.success(proof_id)

    def revoke_fragment(self, actor: ActorId, fragment_id: int) -> LedgerResult[bool]:
        """Revoke a fragment. Only its owner may; revoking twice is a no-op success."""
        check_actor("actor", actor)
        check_uint("fragment_id", fragment_id)

        with self._lock:
            fragment = self._state.fragments.get(fragment_id)
            if fragment is None:
                return self._reject(
                    "revoke_fragment", ErrorKind.IDENTITY_NOT_FOUND, fragment_id=fragment_id
                )
            if fragment.owner != actor:
                return self._reject(
                    "revoke_fragment", ErrorKind.NOT_AUTHORIZED, fragment_id=fragment_id, actor=actor
                )

            if not fragment.revoked:
                fragment.revoked = True
                self._logger.info("fragment_revoked", fragment_id=fragment_id, owner=actor)
            return LedgerResult.success(True)

    # ─── Endorsements ───────────────────────────────────────────────

    def create_endorsement(
        self,
        actor: ActorId,
        endorsed_user: ActorId,
        attribute_type: str,
        endorser_hash: bytes,
        weight: int,
    ) -> LedgerResult[int]:
        """
        Endorse another actor, attributed only by a caller-supplied hash.

        The endorser needs an identity with at least the configured reputation
        threshold. The caller's actor id is not written to the record.
        """
        check_actor("actor", actor)
        check_actor("endorsed_user", endorsed_user)
        check_name("attribute_type", attribute_type, self._config.max_name_length)
        endorser_hash = check_hash("endorser_hash", endorser_hash)
        check_uint("weight", weight)

        with self._lock:
            endorser = self._state.identities.get(actor)
            if endorser is None:
                return self._reject("create_endorsement", ErrorKind.IDENTITY_NOT_FOUND, actor=actor)
            if endorser.reputation_score < self._config.endorsement_reputation_threshold:
                return self._reject(
                    "create_endorsement",
                    ErrorKind.REPUTATION_TOO_LOW,
                    actor=actor,
                    reputation=endorser.reputation_score,
                )
            endorsed = self._state.identities.get(endorsed_user)
            if endorsed is None:
                return self._reject(
                    "create_endorsement", ErrorKind.IDENTITY_NOT_FOUND, endorsed_user=endorsed_user
                )

            now = self._clock.now()
            endorsement_id = self._state.next_endorsement_id()
            self._state.endorsements[endorsement_id] = Endorsement(
                endorser_hash=endorser_hash,
                endorsed_user=endorsed_user,
                attribute_type=attribute_type,
                weight=weight,
                timestamp=now,
            )
            endorsed.endorsement_count = saturating_add(endorsed.endorsement_count, 1)
            endorsed.reputation_score = saturating_add(endorsed.reputation_score, weight)

            self._logger.info(
                "endorsement_created",
                endorsement_id=endorsement_id,
                endorsed_user=endorsed_user,
                attribute_type=attribute_type,
                weight=weight,
            )
            return LedgerResult.success(endorsement_id)

    # ─── Oracles ────────────────────────────────────────────────────

    def register_oracle(self, actor: ActorId, oracle_address: ActorId) -> LedgerResult[int]:
        check_actor("actor", actor)
        check_actor("oracle_address", oracle_address)

        with self._lock:
            if actor != self._state.contract_owner:
                return self._reject("register_oracle", ErrorKind.NOT_AUTHORIZED, actor=actor)

            now = self._clock.now()
            oracle_id = self._state.next_oracle_id()
            self._state.oracles[oracle_id] = Oracle(
                oracle_address=oracle_address,
                reputation=self._config.initial_oracle_reputation,
                registered_at=now,
            )
            self._logger.info(
                "oracle_registered", oracle_id=oracle_id, oracle_address=oracle_address
            )
            return LedgerResult.success(oracle_id)

    def deactivate_oracle(self, actor: ActorId, oracle_id: int) -> LedgerResult[bool]:
        """Soft-delete an oracle. There is no reactivation path."""
        check_actor("actor", actor)
        check_uint("oracle_id", oracle_id)

        with self._lock:
            if actor != self._state.contract_owner:
                return self._reject("deactivate_oracle", ErrorKind.NOT_AUTHORIZED, actor=actor)
            oracle = self._state.oracles.get(oracle_id)
            if oracle is None:
                return self._reject(
                    "deactivate_oracle", ErrorKind.ORACLE_NOT_FOUND, oracle_id=oracle_id
                )

            oracle.active = False
            self._logger.info("oracle_deactivated", oracle_id=oracle_id)
            return LedgerResult.success(True)

    def oracle_validate_fragment(
        self,
        actor: ActorId,
        oracle_id: int,
        fragment_id: int,
        validation_score: int,
    ) -> LedgerResult[bool]:
        """
        Add an oracle's validation score to a fragment.

        Unlike verify_fragment this never touches the owner's identity
        reputation, and it does not check the fragment's validity window.
        An inactive oracle is reported as not found.
        """
        check_actor("actor", actor)
        check_uint("oracle_id", oracle_id)
        check_uint("fragment_id", fragment_id)
        check_uint("validation_score", validation_score)

        with self._lock:
            oracle = self._state.oracles.get(oracle_id)
            if oracle is None or not oracle.active:
                return self._reject(
                    "oracle_validate_fragment", ErrorKind.ORACLE_NOT_FOUND, oracle_id=oracle_id
                )
            if actor != oracle.oracle_address:
                return self._reject(
                    "oracle_validate_fragment",
                    ErrorKind.NOT_AUTHORIZED,
                    oracle_id=oracle_id,
                    actor=actor,
                )
            fragment = self._state.fragments.get(fragment_id)
            if fragment is None:
                return self._reject(
                    "oracle_validate_fragment",
                    ErrorKind.IDENTITY_NOT_FOUND,
                    fragment_id=fragment_id,
                )

            oracle.total_validations = saturating_add(oracle.total_validations, 1)
            fragment.fragment_reputation = saturating_add(
                fragment.fragment_reputation, validation_score
            )
            self._logger.info(
                "fragment_oracle_validated",
                oracle_id=oracle_id,
                fragment_id=fragment_id,
                score=validation_score,
            )
            return LedgerResult.success(True)

    # ─── Administration ─────────────────────────────────────────────

    def register_attribute_type(
        self,
        actor: ActorId,
        name: str,
        min_reputation: int,
        verification_required: bool,
    ) -> LedgerResult[bool]:
        """Create or overwrite an attribute type; it is always (re-)enabled."""
        check_actor("actor", actor)
        check_name("name", name, self._config.max_name_length)
        check_uint("min_reputation", min_reputation)

        with self._lock:
            if actor != self._state.contract_owner:
                return self._reject("register_attribute_type", ErrorKind.NOT_AUTHORIZED, actor=actor)

            self._state.attribute_types[name] = AttributeType(
                enabled=True,
                min_reputation=min_reputation,
                verification_required=verification_required,
            )
            self._logger.info(
                "attribute_type_registered",
                name=name,
                min_reputation=min_reputation,
                verification_required=verification_required,
            )
            return LedgerResult.success(True)

    def disable_attribute_type(self, actor: ActorId, name: str) -> LedgerResult[bool]:
        check_actor("actor", actor)
        check_name("name", name, self._config.max_name_length)

        with self._lock:
            if actor != self._state.contract_owner:
                return self._reject("disable_attribute_type", ErrorKind.NOT_AUTHORIZED, actor=actor)
            attribute = self._state.attribute_types.get(name)
            if attribute is None:
                return self._reject("disable_attribute_type", ErrorKind.INVALID_ATTRIBUTE, name=name)

            attribute.enabled = False
            self._logger.info("attribute_type_disabled", name=name)
            return LedgerResult.success(True)

    def update_platform_fee(self, actor: ActorId, new_fee: int) -> LedgerResult[bool]:
        check_actor("actor", actor)
        check_uint("new_fee", new_fee)

        with self._lock:
            if actor != self._state.contract_owner:
                return self._reject("update_platform_fee", ErrorKind.NOT_AUTHORIZED, actor=actor)

            previous = self._state.platform_fee
            self._state.platform_fee = new_fee
            self._logger.info("platform_fee_updated", previous=previous, new=new_fee)
            return LedgerResult.success(True)

    # ─── Queries ────────────────────────────────────────────────────
    # Lookups return copies so callers cannot mutate ledger state.

    def get_identity_fragment(self, fragment_id: int) -> IdentityFragment | None:
        with self._lock:
            fragment = self._state.fragments.get(fragment_id)
            return fragment.model_copy() if fragment else None

    def get_user_identity(self, user: ActorId) -> UserIdentity | None:
        with self._lock:
            identity = self._state.identities.get(user)
            return identity.model_copy() if identity else None

    def get_proof_verification(self, proof_id: int) -> ProofVerification | None:
        with self._lock:
            verification = self._state.verifications.get(proof_id)
            return verification.model_copy() if verification else None

    def get_oracle_info(self, oracle_id: int) -> Oracle | None:
        with self._lock:
            oracle = self._state.oracles.get(oracle_id)
            return oracle.model_copy() if oracle else None

    def get_endorsement(self, endorsement_id: int) -> Endorsement | None:
        with self._lock:
            endorsement = self._state.endorsements.get(endorsement_id)
            return endorsement.model_copy() if endorsement else None

    def get_attribute_type(self, name: str) -> AttributeType | None:
        with self._lock:
            attribute = self._state.attribute_types.get(name)
            return attribute.model_copy() if attribute else None

    def is_fragment_valid(self, fragment_id: int) -> bool:
        """False for unknown ids, revoked fragments, and from expires_at onward."""
        with self._lock:
            fragment = self._state.fragments.get(fragment_id)
            if fragment is None:
                return False
            return fragment.is_valid_at(self._clock.now())

    def is_attribute_enabled(self, name: str) -> bool:
        with self._lock:
            return self._attribute_enabled(name)

    def get_platform_stats(self) -> PlatformStats:
        with self._lock:
            return self._state.platform_stats()

    def get_contract_owner(self) -> ActorId:
        return self._state.contract_owner

    # ─── Snapshots ──────────────────────────────────────────────────

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._state.to_snapshot()

    @classmethod
    def from_snapshot(
        cls,
        snapshot: LedgerSnapshot,
        clock: LogicalClock | None = None,
        config: LedgerConfig | None = None,
    ) -> LedgerService:
        state = LedgerState.from_snapshot(snapshot)
        return cls(snapshot.contract_owner, clock=clock, config=config, state=state)

    def save_snapshot(self, path: str | Path | None = None) -> Path:
        """Write the full state as JSON. The file is replaced atomically."""
        target = Path(path or self._config.snapshot_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        # One tmp file per write; savers in other threads or ledgers never share it.
        tmp = target.with_name(f"{target.name}.{uuid.uuid4().hex}.tmp")
        with self._lock:
            payload = self._state.to_snapshot().model_dump_json(indent=2)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(target)
        self._logger.info("ledger_snapshot_saved", path=str(target))
        return target

    @classmethod
    def load_snapshot(
        cls,
        path: str | Path,
        clock: LogicalClock | None = None,
        config: LedgerConfig | None = None,
    ) -> LedgerService:
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"Ledger snapshot not found: {source}")
        snapshot = LedgerSnapshot.model_validate_json(source.read_text(encoding="utf-8"))
        return cls.from_snapshot(snapshot, clock=clock, config=config)

    # ─── Internal ───────────────────────────────────────────────────

    def _attribute_enabled(self, name: str) -> bool:
        attribute = self._state.attribute_types.get(name)
        return attribute is not None and attribute.enabled

    def _reject(self, operation: str, kind: ErrorKind, **context: Any) -> LedgerResult[Any]:
        self._logger.debug("operation_rejected", operation=operation, error=kind.value, **context)
        return LedgerResult.failure(kind)

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._state.stats,
                "clock": self._clock.now(),
                "platform": self._state.platform_stats().model_dump(),
            }
