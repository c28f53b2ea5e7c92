"""
Rule API Routes
TradeJournal Backend

CRUD for trading rules plus their version ledger and history.
All mutations go through the shared RuleLifecycleService.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from tradejournal.api.deps import get_history_service, get_rule_service, respond
from tradejournal.services.rule_history import RuleHistoryService
from tradejournal.services.rule_lifecycle import RuleLifecycleService

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: Dict[str, Any] = Body(...),
    service: RuleLifecycleService = Depends(get_rule_service),
):
    """Create a rule with its first version and a created event."""
    return respond(await service.create_rule(payload))


@router.get("")
async def list_rules(
    active: Optional[bool] = None,
    history: RuleHistoryService = Depends(get_history_service),
):
    """List current rules, optionally only active or inactive ones."""
    return respond(await history.list_rules(active=active))


@router.get("/{rule_id}")
async def get_rule(
    rule_id: str,
    history: RuleHistoryService = Depends(get_history_service),
):
    return respond(await history.get_rule(rule_id))


@router.patch("/{rule_id}")
async def update_rule(
    rule_id: str,
    payload: Dict[str, Any] = Body(...),
    service: RuleLifecycleService = Depends(get_rule_service),
):
    """Partial update; a version and an updated event are written only if something changed."""
    return respond(await service.update_rule(rule_id, payload))


@router.post("/{rule_id}/toggle")
async def toggle_rule(
    rule_id: str,
    service: RuleLifecycleService = Depends(get_rule_service),
):
    """Flip the active flag."""
    return respond(await service.toggle_active(rule_id))


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: str,
    service: RuleLifecycleService = Depends(get_rule_service),
):
    """Delete the rule; its versions and history remain readable."""
    return respond(await service.delete_rule(rule_id))


# =============================================================================
# Versions & History
# =============================================================================

@router.get("/{rule_id}/versions")
async def list_versions(
    rule_id: str,
    history: RuleHistoryService = Depends(get_history_service),
):
    return respond(await history.list_versions(rule_id))


# Declared before /versions/{version_number} so "compare" is not parsed as a number
@router.get("/{rule_id}/versions/compare")
async def compare_versions(
    rule_id: str,
    from_version: int = Query(..., alias="from", ge=1),
    to_version: int = Query(..., alias="to", ge=1),
    history: RuleHistoryService = Depends(get_history_service),
):
    """Field-by-field changes between two versions."""
    return respond(await history.compare_versions(rule_id, from_version, to_version))


@router.get("/{rule_id}/versions/{version_number}")
async def get_version(
    rule_id: str,
    version_number: int,
    history: RuleHistoryService = Depends(get_history_service),
):
    return respond(await history.get_version(rule_id, version_number))


@router.get("/{rule_id}/history")
async def rule_history(
    rule_id: str,
    history: RuleHistoryService = Depends(get_history_service),
):
    """History events for one rule, newest first."""
    return respond(await history.history_for_rule(rule_id))
