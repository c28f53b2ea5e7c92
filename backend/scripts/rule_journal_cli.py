#!/usr/bin/env python3
"""
Rule Journal CLI

Development and maintenance commands for the rule store.

Usage:
    python scripts/rule_journal_cli.py init-db
    python scripts/rule_journal_cli.py seed --seed 42 --days 30
    python scripts/rule_journal_cli.py backfill-versions
    python scripts/rule_journal_cli.py history --limit 20
    python scripts/rule_journal_cli.py active-on 2025-01-15
    python scripts/rule_journal_cli.py clear --yes
"""

import asyncio
import argparse
import sys
from datetime import date

from loguru import logger

from tradejournal.core.config import settings
from tradejournal.core.logging import setup_logging
from tradejournal.db.session import build_engine, build_session_factory, init_db
from tradejournal.services.admin import backfill_initial_versions, clear_rule_data
from tradejournal.services.fixtures import RuleHistoryFixtureGenerator
from tradejournal.services.rule_history import RuleHistoryService
from tradejournal.services.rule_lifecycle import RuleLifecycleService


def _session_factory(args):
    engine = build_engine(args.database_url)
    return engine, build_session_factory(engine)


async def create_tables(args):
    """Create missing tables (development databases without migrations)."""
    engine, _ = _session_factory(args)
    try:
        await init_db(engine)
        print("✓ Tables created")
    finally:
        await engine.dispose()
    return 0


async def seed(args):
    """Generate backdated rules, versions and history."""
    engine, factory = _session_factory(args)
    try:
        generator = RuleHistoryFixtureGenerator(
            RuleLifecycleService(factory),
            seed=args.seed,
            days=args.days,
        )
        report = await generator.generate()
    finally:
        await engine.dispose()

    print(f"\n{'='*60}")
    print("Rule history generated")
    print(f"{'='*60}")
    print(f"  Rules created:  {report.created}")
    print(f"  Updates:        {report.updated}")
    print(f"  Toggles:        {report.toggled}")
    print(f"  Skipped:        {report.skipped}")
    return 0 if report.skipped == 0 else 1


async def backfill_versions(args):
    """Create version 1 for rules that predate the version ledger."""
    engine, factory = _session_factory(args)
    try:
        created = await backfill_initial_versions(factory)
    finally:
        await engine.dispose()
    print(f"✓ {created} initial versions created")
    return 0


async def show_history(args):
    """Print the most recent history events."""
    engine, factory = _session_factory(args)
    try:
        result = await RuleHistoryService(factory).list_history(limit=args.limit)
    finally:
        await engine.dispose()

    if not result.success:
        print(f"✗ {result.error}")
        return 1
    for event in result.data:
        category = event.category.value if event.category else "Unknown"
        print(
            f"{event.timestamp:%Y-%m-%d %H:%M}  {event.event_type.value:<12} "
            f"{event.rule_name} [{category}]"
        )
    return 0


async def active_on(args):
    """Print which rules were active on a day."""
    engine, factory = _session_factory(args)
    try:
        result = await RuleHistoryService(factory).active_rules_on(args.day)
    finally:
        await engine.dispose()

    if not result.success:
        print(f"✗ {result.error}")
        return 1
    print(f"Active on {args.day.isoformat()}:")
    for rule in result.data.active_rules:
        print(f"  ✓ {rule.name}")
    print("Inactive:")
    for rule in result.data.inactive_rules:
        print(f"  - {rule.name}")
    return 0


async def clear(args):
    """Delete all rules, versions and history."""
    if not args.yes:
        print("Refusing to clear the rule store without --yes")
        return 1
    engine, factory = _session_factory(args)
    try:
        counts = await clear_rule_data(factory)
    finally:
        await engine.dispose()
    for name, count in counts.items():
        print(f"  {name}: {count} deleted")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="TradeJournal rule maintenance CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help="Async SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Init command
    subparsers.add_parser("init-db", help="Create missing tables")

    # Seed command
    seed_parser = subparsers.add_parser("seed", help="Generate sample rule history")
    seed_parser.add_argument("--seed", type=int, default=settings.rules.fixture_seed)
    seed_parser.add_argument("--days", type=int, default=settings.rules.fixture_days)

    # Backfill command
    subparsers.add_parser("backfill-versions", help="Create missing initial versions")

    # History command
    history_parser = subparsers.add_parser("history", help="Show recent history events")
    history_parser.add_argument("--limit", type=int, default=20)

    # Active-on command
    active_parser = subparsers.add_parser("active-on", help="Show rules active on a day")
    active_parser.add_argument("day", type=date.fromisoformat)

    # Clear command
    clear_parser = subparsers.add_parser("clear", help="Delete all rule data")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging()

    # Map commands to functions
    commands = {
        "init-db": create_tables,
        "seed": seed,
        "backfill-versions": backfill_versions,
        "history": show_history,
        "active-on": active_on,
        "clear": clear,
    }

    func = commands[args.command]
    logger.debug(f"Running '{args.command}' against {args.database_url.split('@')[-1]}")
    return asyncio.run(func(args))


if __name__ == "__main__":
    sys.exit(main())
