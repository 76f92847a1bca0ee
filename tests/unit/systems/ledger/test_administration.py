"""
Unit tests for owner-only administration.

Tests the attribute registry, platform fee, and that every owner-gated
operation leaves state untouched when called by anyone else.
"""

from __future__ import annotations

import pytest

from identity_ledger.config import LedgerConfig
from identity_ledger.systems.ledger.errors import ErrorKind
from identity_ledger.systems.ledger.service import LedgerService

OWNER = "owner"
MALLORY = "mallory"


# ─── Attribute Registry ──────────────────────────────────────────


class TestAttributeRegistry:
    def test_register_enables(self):
        ledger = LedgerService(OWNER)

        assert ledger.register_attribute_type(OWNER, "email", 10, True).ok

        attribute = ledger.get_attribute_type("email")
        assert attribute.enabled is True
        assert attribute.min_reputation == 10
        assert attribute.verification_required is True
        assert ledger.is_attribute_enabled("email") is True

    def test_unknown_attribute_is_disabled(self):
        ledger = LedgerService(OWNER)
        assert ledger.is_attribute_enabled("email") is False
        assert ledger.get_attribute_type("email") is None

    def test_disable(self):
        ledger = LedgerService(OWNER)
        ledger.register_attribute_type(OWNER, "email", 0, False)

        assert ledger.disable_attribute_type(OWNER, "email").ok
        assert ledger.is_attribute_enabled("email") is False
        assert ledger.get_attribute_type("email").enabled is False

    def test_disable_unknown(self):
        ledger = LedgerService(OWNER)
        result = ledger.disable_attribute_type(OWNER, "email")
        assert result.error == ErrorKind.INVALID_ATTRIBUTE

    def test_reregister_overwrites_and_reenables(self):
        ledger = LedgerService(OWNER)
        ledger.register_attribute_type(OWNER, "email", 0, False)
        ledger.disable_attribute_type(OWNER, "email")

        ledger.register_attribute_type(OWNER, "email", 25, True)

        attribute = ledger.get_attribute_type("email")
        assert attribute.enabled is True
        assert attribute.min_reputation == 25
        assert attribute.verification_required is True

    def test_name_length_bound(self):
        ledger = LedgerService(OWNER)
        assert ledger.register_attribute_type(OWNER, "x" * 50, 0, False).ok
        with pytest.raises(ValueError):
            ledger.register_attribute_type(OWNER, "x" * 51, 0, False)


# ─── Platform Fee ────────────────────────────────────────────────


class TestPlatformFee:
    def test_default_fee(self):
        assert LedgerService(OWNER).get_platform_stats().platform_fee == 100

    def test_configured_default_fee(self):
        ledger = LedgerService(OWNER, config=LedgerConfig(default_platform_fee=250))
        assert ledger.get_platform_stats().platform_fee == 250

    def test_owner_updates_fee(self):
        ledger = LedgerService(OWNER)

        assert ledger.update_platform_fee(OWNER, 0).ok
        assert ledger.get_platform_stats().platform_fee == 0


# ─── Owner-only Gate ─────────────────────────────────────────────


class TestOwnerOnlyGate:
    @pytest.mark.parametrize(
        "call",
        [
            lambda ledger: ledger.register_oracle(MALLORY, MALLORY),
            lambda ledger: ledger.deactivate_oracle(MALLORY, 1),
            lambda ledger: ledger.register_attribute_type(MALLORY, "email", 0, False),
            lambda ledger: ledger.disable_attribute_type(MALLORY, "email"),
            lambda ledger: ledger.update_platform_fee(MALLORY, 1),
        ],
    )
    def test_non_owner_rejected_without_changes(self, call):
        ledger = LedgerService(OWNER)
        ledger.register_attribute_type(OWNER, "email", 0, False)
        ledger.register_oracle(OWNER, "oracle")
        ledger.initialize_identity(MALLORY)
        before = ledger.snapshot()

        result = call(ledger)

        assert result.error == ErrorKind.NOT_AUTHORIZED
        assert ledger.snapshot() == before

    def test_owner_is_fixed(self):
        ledger = LedgerService(OWNER)
        assert ledger.get_contract_owner() == OWNER
        assert ledger.contract_owner == OWNER

    def test_owner_may_also_hold_an_identity(self):
        ledger = LedgerService(OWNER)
        assert ledger.initialize_identity(OWNER).ok
