"""
API Dependencies
TradeJournal Backend

Process-wide service instances. The lifecycle service holds the per-rule
locks, so every request must share the same one.
"""

from functools import lru_cache

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from tradejournal.db.session import AsyncSessionLocal
from tradejournal.schemas.common import ActionResult
from tradejournal.services.rule_history import RuleHistoryService
from tradejournal.services.rule_lifecycle import RuleLifecycleService


ERROR_STATUS = {
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "persistence_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@lru_cache()
def get_rule_service() -> RuleLifecycleService:
    return RuleLifecycleService(AsyncSessionLocal)


@lru_cache()
def get_history_service() -> RuleHistoryService:
    return RuleHistoryService(AsyncSessionLocal)


def respond(result: ActionResult):
    """
    Return a successful result as-is; send failures with the status their code maps to.

    The body is the ActionResult in both cases.
    """
    if result.success:
        return result
    if result.code not in ERROR_STATUS:
        raise HTTPException(status_code=500, detail=result.error)
    return JSONResponse(status_code=ERROR_STATUS[result.code], content=result.model_dump(mode="json", by_alias=True))
