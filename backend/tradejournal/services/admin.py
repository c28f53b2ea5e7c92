"""
Administrative maintenance for rule data.

Backfilling missing initial versions and bulk resets. Used by the scripts in
``backend/scripts`` only; not reachable from the API.
"""

import uuid
from typing import Dict

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from tradejournal.db.models.rule import RuleVersion
from tradejournal.db.repositories.rules import (
    RuleHistoryRepository,
    RuleRepository,
    RuleVersionRepository,
)


async def backfill_initial_versions(session_factory: async_sessionmaker) -> int:
    """
    Create version 1 for every rule that has no versions yet.
    
    The snapshot copies the rule's current fields and keeps its creation time.
    Returns the number of versions created.
    """
    created = 0
    async with session_factory() as session:
        async with session.begin():
            versions = RuleVersionRepository(session)
            versioned = set(await versions.rule_ids_with_versions())
            for rule in await RuleRepository(session).list_rules():
                if rule.id in versioned:
                    continue
                await versions.add(RuleVersion(
                    id=uuid.uuid4(),
                    rule_id=rule.id,
                    version_number=1,
                    name=rule.name,
                    category=rule.category,
                    description=rule.description,
                    is_active=rule.is_active,
                    created_at=rule.created_at,
                ))
                logger.info(f"Created version 1 for rule '{rule.name}' ({rule.id})")
                created += 1
    logger.info(f"Backfill complete: {created} initial versions created")
    return created


async def clear_rule_data(session_factory: async_sessionmaker) -> Dict[str, int]:
    """Delete every history event, version and rule in one transaction."""
    async with session_factory() as session:
        async with session.begin():
            counts = {
                "history_events": await RuleHistoryRepository(session).purge(),
                "versions": await RuleVersionRepository(session).purge(),
                "rules": await RuleRepository(session).purge(),
            }
    logger.warning(
        "Cleared rule data: "
        + ", ".join(f"{count} {name}" for name, count in counts.items())
    )
    return counts
