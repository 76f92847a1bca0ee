"""
IdentityLedger — identity-and-reputation ledger.

Actors register identities, attach expiring proof fragments, and accumulate
reputation from verifications, oracle validations and peer endorsements.
"""

from identity_ledger.systems.ledger import LedgerService

__all__ = ["LedgerService"]
