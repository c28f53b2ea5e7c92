"""
Database Models Package
TradeJournal Backend

Exports all SQLAlchemy models for the application.
"""

from tradejournal.db.base import Base

from tradejournal.db.models.rule import (
    RuleCategory,
    RuleEventType,
    Rule,
    RuleVersion,
    RuleHistoryEvent,
)


__all__ = [
    # Base
    "Base",
    
    # Enums
    "RuleCategory",
    "RuleEventType",
    
    # Rule Models
    "Rule",
    "RuleVersion",
    "RuleHistoryEvent",
]
