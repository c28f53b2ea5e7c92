"""Pydantic schemas for the API and service boundaries."""

from tradejournal.schemas.common import ActionResult
from tradejournal.schemas.rule import (
    RuleCategory,
    RuleEventType,
    RuleCreate,
    RuleUpdate,
    RuleRead,
    RuleVersionRead,
    RuleHistoryEventRead,
    ActiveRulesOnDay,
    VersionComparison,
    DescriptionSummary,
    FieldChange,
    CreatedDetails,
    UpdatedDetails,
    ToggledDetails,
    DeletedDetails,
    FinalState,
    HistoryDetails,
    parse_history_details,
)

__all__ = [
    "ActionResult",
    "RuleCategory",
    "RuleEventType",
    "RuleCreate",
    "RuleUpdate",
    "RuleRead",
    "RuleVersionRead",
    "RuleHistoryEventRead",
    "ActiveRulesOnDay",
    "VersionComparison",
    "DescriptionSummary",
    "FieldChange",
    "CreatedDetails",
    "UpdatedDetails",
    "ToggledDetails",
    "DeletedDetails",
    "FinalState",
    "HistoryDetails",
    "parse_history_details",
]
