from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from tradejournal.db.models.rule import RuleCategory, RuleEventType
from tradejournal.schemas.block_document import (
    BlockDocument,
    DescriptionSummary,
    coerce_document,
    empty_document,
)


# =============================================================================
# Inputs
# =============================================================================

class RuleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")
    
    name: str = Field(..., min_length=1, max_length=255)
    category: RuleCategory
    description: BlockDocument = Field(default_factory=empty_document)
    is_active: bool = False
    
    @field_validator("description", mode="before")
    @classmethod
    def _check_description(cls, value: Any) -> BlockDocument:
        return coerce_document(value)


class RuleUpdate(BaseModel):
    """Partial update; fields left out (or None) keep their current value."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")
    
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[RuleCategory] = None
    description: Optional[BlockDocument] = None
    is_active: Optional[bool] = None
    
    @field_validator("description", mode="before")
    @classmethod
    def _check_description(cls, value: Any) -> Optional[BlockDocument]:
        if value is None:
            return None
        return coerce_document(value)
    
    def changes(self) -> Dict[str, Any]:
        # Only top-level fields; None inside a description is content
        return {field: value for field, value in self.model_dump().items() if value is not None}


# =============================================================================
# History details (tagged by event_type)
# =============================================================================

class FieldChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    changed: bool = True
    from_: Any = Field(default=None, alias="from")
    to: Any = None


class CreatedDetails(BaseModel):
    event_type: Literal["created"] = "created"
    name: str
    category: RuleCategory
    is_active: bool
    version_number: int = 1


class UpdatedDetails(BaseModel):
    event_type: Literal["updated"] = "updated"
    changes: Dict[str, FieldChange]
    previous_version: int
    new_version: int


class ToggledDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    event_type: Literal["activated", "deactivated"]
    from_: bool = Field(alias="from")
    to: bool
    version_number: int


class FinalState(BaseModel):
    name: str
    category: RuleCategory
    is_active: bool
    description: DescriptionSummary


class DeletedDetails(BaseModel):
    event_type: Literal["deleted"] = "deleted"
    final_state: FinalState
    version_number: Optional[int] = None


HistoryDetails = Annotated[
    Union[CreatedDetails, UpdatedDetails, ToggledDetails, DeletedDetails],
    Field(discriminator="event_type"),
]

_details_adapter = TypeAdapter(HistoryDetails)


def parse_history_details(raw: Optional[Dict[str, Any]]) -> Optional[HistoryDetails]:
    if raw is None:
        return None
    return _details_adapter.validate_python(raw)


# =============================================================================
# Outputs
# =============================================================================

class RuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    name: str
    category: RuleCategory
    description: BlockDocument
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class RuleVersionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    rule_id: UUID
    version_number: int
    name: str
    category: RuleCategory
    description: BlockDocument
    is_active: bool
    created_at: datetime


class RuleHistoryEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    rule_id: UUID
    rule_name: str
    event_type: RuleEventType
    timestamp: datetime
    details: Optional[HistoryDetails] = None
    # Current category of the rule; None once the rule is deleted
    category: Optional[RuleCategory] = None


class VersionComparison(BaseModel):
    rule_id: UUID
    from_version: int
    to_version: int
    changes: Dict[str, FieldChange]


class ActiveRulesOnDay(BaseModel):
    day: date
    active_rules: List[RuleRead]
    inactive_rules: List[RuleRead]
