"""
Domain Models - Rules
TradeJournal Backend

SQLAlchemy models for:
- Rule (current state, mutable)
- Rule Version (append-only full snapshots)
- Rule History Event (append-only semantic events)

Version and history rows reference the rule by a plain indexed column rather
than a foreign key so they outlive the rule they describe.
"""

import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Index, UniqueConstraint, Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tradejournal.db.base import Base, JSONDocument, utc_now


class RuleCategory(str, enum.Enum):
    ENTRY = "Entry"
    EXIT = "Exit"
    RISK_MANAGEMENT = "Risk Management"
    PSYCHOLOGY = "Psychology"
    SETUP = "Setup"
    ANALYSIS = "Analysis"
    OTHER = "Other"


class RuleEventType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    DELETED = "deleted"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _category_type() -> SQLEnum:
    return SQLEnum(
        RuleCategory,
        name="rule_category",
        native_enum=False,
        length=32,
        values_callable=_enum_values,
    )


class Rule(Base):
    """A trading rule as it currently stands."""
    __tablename__ = "rules"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[RuleCategory] = mapped_column(_category_type(), nullable=False)
    description: Mapped[Union[Dict[str, Any], List[Dict[str, Any]]]] = mapped_column(JSONDocument, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utc_now)
    
    __table_args__ = (
        Index("idx_rule_category", "category"),
        Index("idx_rule_active", "is_active"),
    )
    
    def __repr__(self) -> str:
        return f"<Rule {self.id} {self.name!r} active={self.is_active}>"


class RuleVersion(Base):
    """Immutable snapshot of a rule's fields."""
    __tablename__ = "rule_versions"
    
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    rule_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    
    # Snapshot
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[RuleCategory] = mapped_column(_category_type(), nullable=False)
    description: Mapped[Union[Dict[str, Any], List[Dict[str, Any]]]] = mapped_column(JSONDocument, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    
    __table_args__ = (
        UniqueConstraint("rule_id", "version_number", name="uq_rule_version_number"),
        Index("idx_rule_version_rule", "rule_id"),
    )
    
    def __repr__(self) -> str:
        return f"<RuleVersion {self.rule_id} v{self.version_number}>"


class RuleHistoryEvent(Base):
    """Semantic change event for a rule."""
    __tablename__ = "rule_history_events"
    
    # Insertion order; breaks ties between events sharing a timestamp
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    rule_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    rule_name: Mapped[str] = mapped_column(String(255), nullable=False)  # name at event time
    event_type: Mapped[RuleEventType] = mapped_column(
        SQLEnum(
            RuleEventType,
            name="rule_event_type",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument)
    
    __table_args__ = (
        Index("idx_rule_history_rule", "rule_id"),
        Index("idx_rule_history_type", "event_type"),
        Index("idx_rule_history_time", "timestamp"),
    )
