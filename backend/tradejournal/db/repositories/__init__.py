"""
Repository Layer
TradeJournal Backend

Provides data access abstractions for all domain models.
"""

from tradejournal.db.repositories.rules import (
    RuleRepository,
    RuleVersionRepository,
    RuleHistoryRepository,
)

__all__ = [
    "RuleRepository",
    "RuleVersionRepository",
    "RuleHistoryRepository",
]
