"""
Unit tests for identity and fragment lifecycles.

Tests identity initialization, fragment creation, verification, revocation,
and the expiration window.
"""

from __future__ import annotations

import hashlib

import pytest

from identity_ledger.systems.ledger.clock import ManualClock
from identity_ledger.systems.ledger.errors import ErrorKind
from identity_ledger.systems.ledger.service import LedgerService

OWNER = "owner"
ALICE = "alice"
BOB = "bob"


# ─── Fixtures ────────────────────────────────────────────────────


def make_hash(seed: str) -> bytes:
    return hashlib.sha256(seed.encode()).digest()


def make_ledger(height: int = 0) -> tuple[LedgerService, ManualClock]:
    clock = ManualClock(height)
    ledger = LedgerService(OWNER, clock=clock)
    ledger.register_attribute_type(OWNER, "email", 0, False).unwrap()
    return ledger, clock


def make_fragment(
    ledger: LedgerService,
    actor: str = ALICE,
    validity_blocks: int = 100,
) -> int:
    if ledger.get_user_identity(actor) is None:
        ledger.initialize_identity(actor).unwrap()
    return ledger.create_fragment(actor, "email", make_hash(actor), validity_blocks).unwrap()


# ─── Identity Initialization ─────────────────────────────────────


class TestInitializeIdentity:
    def test_creates_zeroed_identity_at_clock(self):
        ledger, _ = make_ledger(height=7)

        result = ledger.initialize_identity(ALICE)

        assert result.ok
        identity = ledger.get_user_identity(ALICE)
        assert identity is not None
        assert identity.total_fragments == 0
        assert identity.reputation_score == 0
        assert identity.endorsement_count == 0
        assert identity.created_at == 7
        assert identity.last_activity_at == 7

    def test_second_initialization_fails(self):
        ledger, clock = make_ledger()
        ledger.initialize_identity(ALICE)
        clock.advance_to(5)

        result = ledger.initialize_identity(ALICE)

        assert result.error == ErrorKind.ALREADY_EXISTS
        assert ledger.get_user_identity(ALICE).created_at == 0

    def test_unknown_actor_has_no_identity(self):
        ledger, _ = make_ledger()
        assert ledger.get_user_identity("nobody") is None


# ─── Fragment Creation ───────────────────────────────────────────


class TestCreateFragment:
    def test_assigns_id_and_expiry(self):
        ledger, clock = make_ledger()
        ledger.initialize_identity(ALICE)
        clock.advance_to(10)

        fragment_id = ledger.create_fragment(ALICE, "email", make_hash("a"), 100).unwrap()

        assert fragment_id == 1
        fragment = ledger.get_identity_fragment(1)
        assert fragment.owner == ALICE
        assert fragment.attribute_type == "email"
        assert fragment.proof_hash == make_hash("a")
        assert fragment.created_at == 10
        assert fragment.expires_at == 110
        assert fragment.revoked is False
        assert fragment.verification_count == 0
        assert fragment.fragment_reputation == 0

    def test_updates_owner_and_platform_counters(self):
        ledger, clock = make_ledger()
        ledger.initialize_identity(ALICE)
        clock.advance_to(3)

        ledger.create_fragment(ALICE, "email", make_hash("a"), 10)
        ledger.create_fragment(ALICE, "email", make_hash("b"), 10)

        identity = ledger.get_user_identity(ALICE)
        assert identity.total_fragments == 2
        assert identity.last_activity_at == 3
        assert ledger.get_platform_stats().total_proofs == 2

    def test_requires_identity(self):
        ledger, _ = make_ledger()

        result = ledger.create_fragment(ALICE, "email", make_hash("a"), 100)

        assert result.error == ErrorKind.IDENTITY_NOT_FOUND
        assert ledger.get_identity_fragment(1) is None
        assert ledger.get_platform_stats().total_proofs == 0

    def test_identity_checked_before_attribute(self):
        ledger, _ = make_ledger()
        result = ledger.create_fragment(ALICE, "phone", make_hash("a"), 100)
        assert result.error == ErrorKind.IDENTITY_NOT_FOUND

    def test_unregistered_attribute_rejected(self):
        ledger, _ = make_ledger()
        ledger.initialize_identity(ALICE)

        result = ledger.create_fragment(ALICE, "phone", make_hash("a"), 100)

        assert result.error == ErrorKind.INVALID_ATTRIBUTE
        assert ledger.get_user_identity(ALICE).total_fragments == 0

    def test_disabled_attribute_rejected(self):
        ledger, _ = make_ledger()
        ledger.initialize_identity(ALICE)
        ledger.disable_attribute_type(OWNER, "email")

        result = ledger.create_fragment(ALICE, "email", make_hash("a"), 100)

        assert result.error == ErrorKind.INVALID_ATTRIBUTE

    def test_failed_creation_does_not_consume_an_id(self):
        ledger, _ = make_ledger()
        ledger.initialize_identity(ALICE)
        ledger.create_fragment(ALICE, "phone", make_hash("a"), 100)

        assert ledger.create_fragment(ALICE, "email", make_hash("a"), 100).value == 1

    def test_min_reputation_is_not_enforced(self):
        ledger, _ = make_ledger()
        ledger.register_attribute_type(OWNER, "passport", 1_000, True)
        ledger.initialize_identity(ALICE)

        assert ledger.create_fragment(ALICE, "passport", make_hash("p"), 5).ok

    @pytest.mark.parametrize("bad_hash", [b"", b"\x00" * 31, b"\x00" * 33])
    def test_proof_hash_must_be_32_bytes(self, bad_hash):
        ledger, _ = make_ledger()
        ledger.initialize_identity(ALICE)

        with pytest.raises(ValueError):
            ledger.create_fragment(ALICE, "email", bad_hash, 100)

    def test_negative_validity_rejected(self):
        ledger, _ = make_ledger()
        ledger.initialize_identity(ALICE)

        with pytest.raises(ValueError):
            ledger.create_fragment(ALICE, "email", make_hash("a"), -1)


# ─── Expiration ──────────────────────────────────────────────────


class TestFragmentValidity:
    def test_valid_inside_window_only(self):
        ledger, clock = make_ledger(height=20)
        fragment_id = make_fragment(ledger, validity_blocks=5)

        for height in range(20, 25):
            clock.advance_to(height)
            assert ledger.is_fragment_valid(fragment_id) is True
        for height in (25, 26, 1_000):
            clock.advance_to(height)
            assert ledger.is_fragment_valid(fragment_id) is False

    def test_zero_validity_is_never_valid(self):
        ledger, _ = make_ledger(height=4)
        fragment_id = make_fragment(ledger, validity_blocks=0)
        assert ledger.is_fragment_valid(fragment_id) is False

    def test_revoked_is_invalid_before_expiry(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger, validity_blocks=1_000)

        ledger.revoke_fragment(ALICE, fragment_id)

        assert ledger.is_fragment_valid(fragment_id) is False

    def test_unknown_fragment_is_invalid(self):
        ledger, _ = make_ledger()
        assert ledger.is_fragment_valid(42) is False


# ─── Verification ────────────────────────────────────────────────


class TestVerifyFragment:
    def test_confirmed_adds_score_to_owner_and_fragment(self):
        ledger, clock = make_ledger()
        fragment_id = make_fragment(ledger)
        clock.advance_to(30)

        proof_id = ledger.verify_fragment(BOB, fragment_id, True, 20).unwrap()

        assert proof_id == 1
        fragment = ledger.get_identity_fragment(fragment_id)
        assert fragment.verification_count == 1
        assert fragment.fragment_reputation == 20
        identity = ledger.get_user_identity(ALICE)
        assert identity.reputation_score == 20
        assert identity.last_activity_at == 30

    def test_unconfirmed_adds_score_to_fragment_only(self):
        ledger, clock = make_ledger()
        fragment_id = make_fragment(ledger)
        clock.advance_to(30)

        ledger.verify_fragment(BOB, fragment_id, False, 15).unwrap()

        fragment = ledger.get_identity_fragment(fragment_id)
        assert fragment.verification_count == 1
        assert fragment.fragment_reputation == 15
        identity = ledger.get_user_identity(ALICE)
        assert identity.reputation_score == 0
        assert identity.last_activity_at == 0

    def test_appends_audit_record(self):
        ledger, clock = make_ledger()
        fragment_id = make_fragment(ledger)
        clock.advance_to(12)

        proof_id = ledger.verify_fragment(BOB, fragment_id, True, 9).unwrap()

        record = ledger.get_proof_verification(proof_id)
        assert record.fragment_id == fragment_id
        assert record.verifier == BOB
        assert record.verified_at == 12
        assert record.attribute_confirmed is True
        assert record.verification_score == 9
        assert ledger.get_platform_stats().total_verifications == 1

    def test_owner_may_verify_own_fragment(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)
        assert ledger.verify_fragment(ALICE, fragment_id, True, 5).ok

    def test_missing_fragment(self):
        ledger, _ = make_ledger()

        result = ledger.verify_fragment(BOB, 1, True, 10)

        assert result.error == ErrorKind.IDENTITY_NOT_FOUND
        assert ledger.get_proof_verification(1) is None

    def test_expired_fragment(self):
        ledger, clock = make_ledger()
        fragment_id = make_fragment(ledger, validity_blocks=10)
        clock.advance_to(10)

        result = ledger.verify_fragment(BOB, fragment_id, True, 10)

        assert result.error == ErrorKind.PROOF_EXPIRED
        assert ledger.get_identity_fragment(fragment_id).verification_count == 0
        assert ledger.get_platform_stats().total_verifications == 0

    def test_revoked_fragment_reports_expired(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)
        ledger.revoke_fragment(ALICE, fragment_id)

        result = ledger.verify_fragment(BOB, fragment_id, True, 10)

        assert result.error == ErrorKind.PROOF_EXPIRED

    def test_reputation_accumulates(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)

        for score in (3, 4, 5):
            ledger.verify_fragment(BOB, fragment_id, True, score)
        ledger.verify_fragment(BOB, fragment_id, False, 100)

        assert ledger.get_user_identity(ALICE).reputation_score == 12
        fragment = ledger.get_identity_fragment(fragment_id)
        assert fragment.fragment_reputation == 112
        assert fragment.verification_count == 4


# ─── Revocation ──────────────────────────────────────────────────


class TestRevokeFragment:
    def test_owner_revokes(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)

        assert ledger.revoke_fragment(ALICE, fragment_id).ok
        assert ledger.get_identity_fragment(fragment_id).revoked is True

    def test_revoke_is_idempotent(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)
        ledger.verify_fragment(BOB, fragment_id, False, 3)
        ledger.revoke_fragment(ALICE, fragment_id)
        before = ledger.get_identity_fragment(fragment_id)

        result = ledger.revoke_fragment(ALICE, fragment_id)

        assert result.ok
        assert ledger.get_identity_fragment(fragment_id) == before

    def test_non_owner_cannot_revoke(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)

        result = ledger.revoke_fragment(BOB, fragment_id)

        assert result.error == ErrorKind.NOT_AUTHORIZED
        assert ledger.get_identity_fragment(fragment_id).revoked is False

    def test_contract_owner_cannot_revoke_others(self):
        ledger, _ = make_ledger()
        fragment_id = make_fragment(ledger)
        assert ledger.revoke_fragment(OWNER, fragment_id).error == ErrorKind.NOT_AUTHORIZED

    def test_missing_fragment(self):
        ledger, _ = make_ledger()
        assert ledger.revoke_fragment(ALICE, 9).error == ErrorKind.IDENTITY_NOT_FOUND


# ─── End-to-end ──────────────────────────────────────────────────


class TestEmailScenario:
    def test_create_verify_expire(self):
        clock = ManualClock()
        ledger = LedgerService(OWNER, clock=clock)

        assert ledger.initialize_identity(ALICE).ok
        assert ledger.register_attribute_type(OWNER, "email", 0, False).ok

        clock.advance_to(10)
        fragment_id = ledger.create_fragment(ALICE, "email", make_hash("alice@x"), 100).unwrap()
        assert fragment_id == 1
        assert ledger.get_identity_fragment(1).expires_at == 110

        clock.advance_to(50)
        proof_id = ledger.verify_fragment(BOB, 1, True, 20).unwrap()
        assert proof_id == 1
        assert ledger.get_user_identity(ALICE).reputation_score == 20
        assert ledger.get_identity_fragment(1).verification_count == 1

        clock.advance_to(120)
        assert ledger.is_fragment_valid(1) is False
        assert ledger.verify_fragment(BOB, 1, True, 20).error == ErrorKind.PROOF_EXPIRED
