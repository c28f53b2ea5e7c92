"""
Base Repository Pattern Implementation
TradeJournal Backend

Provides generic async CRUD operations. Repositories never commit: the
caller owns the transaction so several writes can form one unit of work.
"""

from abc import ABC
from typing import (
    Any, Dict, Generic, List, Optional, Type, TypeVar, Union
)
from uuid import UUID

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from tradejournal.db.base import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType], ABC):
    """
    Generic async repository.
    
    Type Parameters:
        ModelType: SQLAlchemy model class
    """
    
    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.
        
        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session
    
    def _conditions(self, filters: Optional[Dict[str, Any]]) -> List[Any]:
        conditions = []
        for field_name, value in (filters or {}).items():
            field = getattr(self.model, field_name, None)
            if field is None:
                raise ValueError(f"Field {field_name} not found on {self.model.__name__}")
            conditions.append(field == value)
        return conditions
    
    async def get(self, id: Union[UUID, int, str]) -> Optional[ModelType]:
        """
        Get a single record by ID.
        
        Args:
            id: Primary key value
            
        Returns:
            Model instance or None
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()
    
    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records with optional filtering."""
        query = select(func.count()).select_from(self.model)
        conditions = self._conditions(filters)
        if conditions:
            query = query.where(and_(*conditions))
        result = await self.session.execute(query)
        return result.scalar() or 0
    
    async def add(self, db_obj: ModelType) -> ModelType:
        """Stage a new record and flush it so defaults are populated."""
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj
    
    async def delete(self, db_obj: ModelType) -> None:
        """Hard delete a record."""
        await self.session.delete(db_obj)
        await self.session.flush()


__all__ = [
    "BaseRepository",
]
