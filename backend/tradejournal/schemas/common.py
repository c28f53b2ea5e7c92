from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """Success/error wrapper returned by every service operation."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    
    @classmethod
    def ok(cls, data: Optional[T] = None) -> "ActionResult[T]":
        return cls(success=True, data=data)
    
    @classmethod
    def fail(cls, error: str, code: Optional[str] = None) -> "ActionResult[T]":
        return cls(success=False, error=error, code=code)
