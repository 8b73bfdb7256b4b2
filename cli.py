#!/usr/bin/env python3
"""Proposal Sync CLI."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from proposal_sync.config import ConfigError, load_settings
from proposal_sync.errors import SyncError
from proposal_sync.models import SyncDirection
from proposal_sync.runtime import SyncComponents, build_components
from proposal_sync.stores import init_schema


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proposal-sync",
        description=(
            "Keep relational proposals and their document-store mirrors consistent."
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log sync activity to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sync one proposal.")
    sync_parser.add_argument("proposal_id", help="Relational proposal id.")
    sync_parser.add_argument(
        "--direction",
        choices=[d.value for d in SyncDirection],
        default=SyncDirection.BIDIRECTIONAL.value,
        help="Which way to sync (default: bidirectional).",
    )

    batch_parser = subparsers.add_parser(
        "batch",
        help="Push several proposals from the relational store to documents.",
    )
    batch_parser.add_argument("proposal_ids", nargs="+", help="Proposal ids, synced in order.")

    validate_parser = subparsers.add_parser(
        "validate",
        help="Compare one proposal across both stores.",
    )
    validate_parser.add_argument("proposal_id")

    orphans_parser = subparsers.add_parser(
        "orphans",
        help="Group proposal ids by pair state and report orphans.",
    )
    orphans_parser.add_argument("proposal_ids", nargs="+")

    audit_parser = subparsers.add_parser(
        "audit",
        help="Check proposal counts and organization names for an organization.",
    )
    audit_parser.add_argument("organization_id")

    promote_parser = subparsers.add_parser(
        "promote",
        help="Create a relational row for a document-only proposal.",
    )
    promote_parser.add_argument("proposal_id")

    subparsers.add_parser(
        "init-db",
        help="Create the proposals and users tables if they are missing.",
    )

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _dispatch(args: argparse.Namespace, components: SyncComponents) -> int:
    if args.command == "sync":
        result = await components.orchestrator.sync(args.proposal_id, args.direction)
        _print_json(result.to_dict())
        return 0
    if args.command == "batch":
        batch = await components.orchestrator.batch_sync(args.proposal_ids)
        _print_json(batch.to_dict())
        return 0 if batch.failed == 0 else 1
    if args.command == "validate":
        report = await components.validator.validate_sync_integrity(args.proposal_id)
        _print_json(report.to_dict())
        return 0 if report.passed else 1
    if args.command == "orphans":
        orphans = await components.validator.find_orphans(args.proposal_ids)
        _print_json(orphans.to_dict())
        return 0 if orphans.orphan_count == 0 else 1
    if args.command == "audit":
        summary = await components.auditor.ensure_proposal_consistency(args.organization_id)
        _print_json(summary.to_dict())
        return 0 if summary.consistent else 1
    if args.command == "promote":
        result = await components.orchestrator.promote_document(args.proposal_id)
        _print_json(result.to_dict())
        return 0
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    components = build_components(settings)
    if components.degraded and args.command != "init-db":
        print("Document store unavailable; running in degraded mode.", file=sys.stderr)

    if args.command == "init-db":
        init_schema(components.engine)
        components.engine.dispose()
        print("Proposal tables are ready.")
        return 0

    try:
        return asyncio.run(_dispatch(args, components))
    except SyncError as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1
    finally:
        components.engine.dispose()


if __name__ == "__main__":
    raise SystemExit(main())
