"""
Service Boundary Error Handling
TradeJournal Backend

Every public service operation returns an ``ActionResult`` instead of letting
failures escape. Store failures are reported as persistence errors; anything
else (programming errors) still propagates.
"""

from functools import wraps
from typing import Any, Callable, Coroutine

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from tradejournal.core.exceptions import (
    RuleLifecycleError,
    PersistenceError,
)
from tradejournal.schemas.common import ActionResult


def returns_action_result(operation: str):
    """
    Decorator wrapping an async service method's return value in ``ActionResult``.
    
    Args:
        operation: Human readable name used in log lines and error messages,
            e.g. ``"update rule"``.
    """
    def decorator(func: Callable[..., Coroutine[Any, Any, Any]]):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> ActionResult:
            try:
                data = await func(*args, **kwargs)
            except PersistenceError as e:
                logger.error(f"Failed to {operation}: {e.message}")
                return ActionResult.fail(e.message, e.code)
            except RuleLifecycleError as e:
                logger.warning(f"Rejected {operation}: {e.message}")
                return ActionResult.fail(e.message, e.code)
            except (SQLAlchemyError, OSError) as e:
                logger.exception(f"Store failure during {operation}: {e}")
                return ActionResult.fail(f"Failed to {operation}", PersistenceError.code)
            return ActionResult.ok(data)
        return wrapper
    return decorator
