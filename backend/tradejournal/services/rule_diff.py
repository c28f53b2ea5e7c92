"""
Field diff between two states of a rule.

Change detection compares full values (deep equality for the description);
the description summary only shapes what is written into the history entry.
"""

import enum
from typing import Any, Dict, Mapping

from tradejournal.schemas.block_document import documents_equal, summarize_description
from tradejournal.schemas.rule import FieldChange

TRACKED_FIELDS = ("name", "category", "description", "is_active")


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def rule_fields(source: Any) -> Dict[str, Any]:
    """Tracked fields of a rule, version row or mapping."""
    if isinstance(source, Mapping):
        return {field: source.get(field) for field in TRACKED_FIELDS}
    return {field: getattr(source, field) for field in TRACKED_FIELDS}


def diff_rule_fields(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    preview_length: int = 50,
) -> Dict[str, FieldChange]:
    """Return a ``FieldChange`` per tracked field whose value differs."""
    changes: Dict[str, FieldChange] = {}
    for field in TRACKED_FIELDS:
        old, new = before.get(field), after.get(field)
        if field == "description":
            if documents_equal(old, new):
                continue
            changes[field] = FieldChange(
                from_=summarize_description(old, preview_length).model_dump(),
                to=summarize_description(new, preview_length).model_dump(),
            )
        elif _plain(old) != _plain(new):
            changes[field] = FieldChange(from_=_plain(old), to=_plain(new))
    return changes
