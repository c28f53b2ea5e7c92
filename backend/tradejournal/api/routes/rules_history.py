"""
Rule History API Routes
TradeJournal Backend

Journal-wide history log and point-in-time rule activity.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from tradejournal.api.deps import get_history_service, respond
from tradejournal.db.models.rule import RuleEventType
from tradejournal.services.rule_history import RuleHistoryService

router = APIRouter()


@router.get("")
async def get_rule_history(
    types: Optional[List[RuleEventType]] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    history: RuleHistoryService = Depends(get_history_service),
):
    """All history events, newest first, with each rule's current category."""
    return respond(await history.list_history(event_types=types, limit=limit))


@router.get("/active")
async def get_active_rules(
    on: date = Query(..., description="Calendar day (UTC), YYYY-MM-DD"),
    history: RuleHistoryService = Depends(get_history_service),
):
    """Rules that were active at the end of the given day."""
    return respond(await history.active_rules_on(on))
