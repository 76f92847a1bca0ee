"""
IdentityLedger — Application Entry Point

Wires configuration, logging and the ledger together.

Usage:
    identity-ledger [--config config/default.yaml] stats
    identity-ledger [--config config/default.yaml] fragment <id> [--height N]
    identity-ledger [--config config/default.yaml] identity <actor>

Commands read the snapshot at `ledger.snapshot_path`. If no snapshot exists
an empty ledger owned by `ledger.contract_owner` is used.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from identity_ledger.config import IdentityLedgerConfig, load_config
from identity_ledger.systems.ledger.clock import ManualClock
from identity_ledger.systems.ledger.service import LedgerService
from identity_ledger.telemetry.logging import setup_logging

logger = structlog.get_logger("identity_ledger.main")


def create_ledger(
    config: IdentityLedgerConfig,
    clock: ManualClock | None = None,
) -> LedgerService:
    """Restore the ledger from its snapshot, or start an empty one."""
    snapshot_path = Path(config.ledger.snapshot_path)
    if snapshot_path.exists():
        ledger = LedgerService.load_snapshot(snapshot_path, clock=clock, config=config.ledger)
        if ledger.contract_owner != config.ledger.contract_owner:
            logger.warning(
                "snapshot_owner_differs_from_config",
                snapshot_owner=ledger.contract_owner,
                configured_owner=config.ledger.contract_owner,
            )
        return ledger

    logger.info("ledger_started_empty", contract_owner=config.ledger.contract_owner)
    return LedgerService(config.ledger.contract_owner, clock=clock, config=config.ledger)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="identity-ledger",
        description="Inspect an identity-and-reputation ledger snapshot.",
    )
    parser.add_argument("--config", default="config/default.yaml", help="YAML config path")
    parser.add_argument("--height", type=int, default=0, help="Logical clock height")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Print platform counters")
    fragment = sub.add_parser("fragment", help="Print one fragment and its validity")
    fragment.add_argument("fragment_id", type=int)
    identity = sub.add_parser("identity", help="Print one actor's identity")
    identity.add_argument("actor")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.logging, contract_owner=config.ledger.contract_owner)
    ledger = create_ledger(config, clock=ManualClock(args.height))

    if args.command == "stats":
        print(ledger.get_platform_stats().model_dump_json(indent=2))
        return 0

    if args.command == "fragment":
        fragment = ledger.get_identity_fragment(args.fragment_id)
        if fragment is None:
            print(f"fragment {args.fragment_id} not found", file=sys.stderr)
            return 1
        print(fragment.model_dump_json(indent=2))
        print(f"valid at height {args.height}: {ledger.is_fragment_valid(args.fragment_id)}")
        return 0

    identity = ledger.get_user_identity(args.actor)
    if identity is None:
        print(f"no identity for {args.actor}", file=sys.stderr)
        return 1
    print(identity.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
