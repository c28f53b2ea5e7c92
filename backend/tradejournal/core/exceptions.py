"""
Domain Exceptions
TradeJournal Backend

Failures raised inside the rule lifecycle. Each carries a stable ``code`` that
is surfaced to callers in the ``ActionResult`` wrapper.
"""

from typing import Any, Dict, Optional


class RuleLifecycleError(Exception):
    """Base class for rule lifecycle failures."""
    
    code = "error"
    
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(RuleLifecycleError):
    """A required field is missing or holds an invalid value."""
    
    code = "validation_error"


class NotFoundError(RuleLifecycleError):
    """The targeted rule (or version) does not exist."""
    
    code = "not_found"


class PersistenceError(RuleLifecycleError):
    """The underlying store failed; the unit of work was rolled back."""
    
    code = "persistence_error"
