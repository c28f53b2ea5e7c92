"""
Rule Repositories
TradeJournal Backend

Data access for the rule store, the version ledger and the history log.
"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.db.repository import BaseRepository
from tradejournal.db.models.rule import (
    Rule,
    RuleVersion,
    RuleHistoryEvent,
    RuleEventType,
)


class RuleRepository(BaseRepository[Rule]):
    """Repository for the current rule rows."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(Rule, session)
    
    async def get_for_update(self, rule_id: UUID) -> Optional[Rule]:
        """Load a rule and lock its row for the rest of the transaction."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.id == rule_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()
    
    async def list_rules(self, active: Optional[bool] = None) -> List[Rule]:
        """All rules ordered by name, optionally filtered by active flag."""
        query = select(self.model).order_by(self.model.name, self.model.created_at)
        if active is not None:
            query = query.where(self.model.is_active == active)
        result = await self.session.execute(query)
        return list(result.scalars().all())
    
    async def purge(self) -> int:
        result = await self.session.execute(delete(self.model))
        return result.rowcount or 0


class RuleVersionRepository(BaseRepository[RuleVersion]):
    """Append-only access to the version ledger."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(RuleVersion, session)
    
    async def latest_version_number(self, rule_id: UUID) -> Optional[int]:
        result = await self.session.execute(
            select(func.max(self.model.version_number))
            .where(self.model.rule_id == rule_id)
        )
        return result.scalar()
    
    async def next_version_number(self, rule_id: UUID) -> int:
        """Current max for the rule + 1, or 1 when the rule has no versions."""
        latest = await self.latest_version_number(rule_id)
        return (latest or 0) + 1
    
    async def list_for_rule(self, rule_id: UUID) -> List[RuleVersion]:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.rule_id == rule_id)
            .order_by(self.model.version_number.asc())
        )
        return list(result.scalars().all())
    
    async def get_version(self, rule_id: UUID, version_number: int) -> Optional[RuleVersion]:
        result = await self.session.execute(
            select(self.model).where(
                self.model.rule_id == rule_id,
                self.model.version_number == version_number,
            )
        )
        return result.scalar_one_or_none()
    
    async def rule_ids_with_versions(self) -> List[UUID]:
        result = await self.session.execute(select(self.model.rule_id).distinct())
        return list(result.scalars().all())
    
    async def purge(self, rule_id: Optional[UUID] = None) -> int:
        """Bulk administrative clear, for one rule or the whole ledger."""
        statement = delete(self.model)
        if rule_id is not None:
            statement = statement.where(self.model.rule_id == rule_id)
        result = await self.session.execute(statement)
        return result.rowcount or 0


class RuleHistoryRepository(BaseRepository[RuleHistoryEvent]):
    """Append-only access to the history log."""
    
    def __init__(self, session: AsyncSession):
        super().__init__(RuleHistoryEvent, session)
    
    async def list_events(
        self,
        *,
        rule_id: Optional[UUID] = None,
        event_types: Optional[Iterable[RuleEventType]] = None,
        before: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List[RuleHistoryEvent]:
        """
        Events ordered by timestamp, then insertion order for equal timestamps.

        Filters by rule, by type and by an exclusive upper time bound.
        """
        query = select(self.model)
        if rule_id is not None:
            query = query.where(self.model.rule_id == rule_id)
        if event_types is not None:
            query = query.where(self.model.event_type.in_(list(event_types)))
        if before is not None:
            query = query.where(self.model.timestamp < before)
        
        if newest_first:
            query = query.order_by(self.model.timestamp.desc(), self.model.sequence.desc())
        else:
            query = query.order_by(self.model.timestamp.asc(), self.model.sequence.asc())
        
        if limit is not None:
            query = query.limit(limit)
        
        result = await self.session.execute(query)
        return list(result.scalars().all())
    
    async def purge(self, rule_id: Optional[UUID] = None) -> int:
        """Bulk administrative clear, for one rule or the whole log."""
        statement = delete(self.model)
        if rule_id is not None:
            statement = statement.where(self.model.rule_id == rule_id)
        result = await self.session.execute(statement)
        return result.rowcount or 0
