"""
Rule History Service
TradeJournal Backend

Read side of the rule lifecycle:
- current rules
- history log (all rules or one rule, newest first)
- version ledger, version comparison and replay
- which rules were active on a given day
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from tradejournal.core.config import settings
from tradejournal.core.exceptions import NotFoundError
from tradejournal.db.models.rule import Rule, RuleCategory, RuleEventType
from tradejournal.db.repositories.rules import (
    RuleHistoryRepository,
    RuleRepository,
    RuleVersionRepository,
)
from tradejournal.schemas.rule import (
    ActiveRulesOnDay,
    CreatedDetails,
    RuleHistoryEventRead,
    RuleRead,
    RuleVersionRead,
    ToggledDetails,
    UpdatedDetails,
    VersionComparison,
)
from tradejournal.services.error_handler import returns_action_result
from tradejournal.services.rule_diff import diff_rule_fields, rule_fields
from tradejournal.services.rule_lifecycle import parse_rule_id


def _active_state_after(event: RuleHistoryEventRead) -> Optional[bool]:
    """The is_active value an event leaves behind, if the event determines it."""
    details = event.details
    if isinstance(details, ToggledDetails):
        return details.to
    if isinstance(details, CreatedDetails):
        return details.is_active
    if isinstance(details, UpdatedDetails) and "is_active" in details.changes:
        return bool(details.changes["is_active"].to)
    if event.event_type == RuleEventType.ACTIVATED:
        return True
    if event.event_type == RuleEventType.DEACTIVATED:
        return False
    return None


class RuleHistoryService:
    """Queries over rules, their versions and their history events."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        *,
        preview_length: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.preview_length = preview_length or settings.rules.preview_length

    # =========================================================================
    # Rules
    # =========================================================================

    @returns_action_result("get rules")
    async def list_rules(self, active: Optional[bool] = None) -> List[RuleRead]:
        async with self._session_factory() as session:
            rules = await RuleRepository(session).list_rules(active=active)
            return [RuleRead.model_validate(rule) for rule in rules]

    @returns_action_result("get rule")
    async def get_rule(self, rule_id: Union[UUID, str]) -> RuleRead:
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            rule = await RuleRepository(session).get(rule_id)
            if rule is None:
                raise NotFoundError(f"Rule {rule_id} not found")
            return RuleRead.model_validate(rule)

    # =========================================================================
    # History log
    # =========================================================================

    @returns_action_result("get rule history")
    async def list_history(
        self,
        event_types: Optional[Iterable[Union[RuleEventType, str]]] = None,
        limit: Optional[int] = None,
    ) -> List[RuleHistoryEventRead]:
        """
        All history events, newest first.

        Each event carries the rule's current category, or None when the rule
        has since been deleted.
        """
        types = [RuleEventType(value) for value in event_types] if event_types else None
        async with self._session_factory() as session:
            events = await RuleHistoryRepository(session).list_events(
                event_types=types, limit=limit
            )
            rule_ids = {event.rule_id for event in events}
            categories: Dict[UUID, RuleCategory] = {}
            if rule_ids:
                result = await session.execute(
                    select(Rule.id, Rule.category).where(Rule.id.in_(rule_ids))
                )
                categories = {row.id: row.category for row in result}

        return [
            RuleHistoryEventRead.model_validate(event).model_copy(
                update={"category": categories.get(event.rule_id)}
            )
            for event in events
        ]

    @returns_action_result("get rule history for rule")
    async def history_for_rule(self, rule_id: Union[UUID, str]) -> List[RuleHistoryEventRead]:
        """Events for one rule, newest first. Deleted rules keep their history."""
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            events = await RuleHistoryRepository(session).list_events(rule_id=rule_id)
            rule = await RuleRepository(session).get(rule_id)
            if not events and rule is None:
                raise NotFoundError(f"Rule {rule_id} not found")

        category = rule.category if rule is not None else None
        return [
            RuleHistoryEventRead.model_validate(event).model_copy(update={"category": category})
            for event in events
        ]

    # =========================================================================
    # Version ledger
    # =========================================================================

    @returns_action_result("get rule versions")
    async def list_versions(self, rule_id: Union[UUID, str]) -> List[RuleVersionRead]:
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            versions = await RuleVersionRepository(session).list_for_rule(rule_id)
        if not versions:
            raise NotFoundError(f"No versions recorded for rule {rule_id}")
        return [RuleVersionRead.model_validate(version) for version in versions]

    @returns_action_result("get rule version")
    async def get_version(self, rule_id: Union[UUID, str], version_number: int) -> RuleVersionRead:
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            version = await RuleVersionRepository(session).get_version(rule_id, version_number)
        if version is None:
            raise NotFoundError(f"Version {version_number} of rule {rule_id} not found")
        return RuleVersionRead.model_validate(version)

    @returns_action_result("compare rule versions")
    async def compare_versions(
        self,
        rule_id: Union[UUID, str],
        from_version: int,
        to_version: int,
    ) -> VersionComparison:
        """Per-field changes between two versions of a rule."""
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            versions = RuleVersionRepository(session)
            older = await versions.get_version(rule_id, from_version)
            newer = await versions.get_version(rule_id, to_version)
        for number, version in ((from_version, older), (to_version, newer)):
            if version is None:
                raise NotFoundError(f"Version {number} of rule {rule_id} not found")

        return VersionComparison(
            rule_id=rule_id,
            from_version=from_version,
            to_version=to_version,
            changes=diff_rule_fields(rule_fields(older), rule_fields(newer), self.preview_length),
        )

    @returns_action_result("replay rule versions")
    async def replay_versions(self, rule_id: Union[UUID, str]) -> RuleVersionRead:
        """
        Rebuild a rule's state from its ledger.

        Versions are full snapshots, so replaying them in order reduces to
        taking the last one.
        """
        rule_id = parse_rule_id(rule_id)
        async with self._session_factory() as session:
            versions = await RuleVersionRepository(session).list_for_rule(rule_id)
        if not versions:
            raise NotFoundError(f"No versions recorded for rule {rule_id}")
        return RuleVersionRead.model_validate(versions[-1])

    # =========================================================================
    # Activity
    # =========================================================================

    @returns_action_result("get active rules for date")
    async def active_rules_on(self, day: date) -> ActiveRulesOnDay:
        """
        Partition the existing rules into active and inactive as of the end of ``day``.

        The state of each rule is the one left by its latest history event on
        or before that day; rules with no such event count as inactive.
        """
        end_of_day = datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)
        async with self._session_factory() as session:
            rules = await RuleRepository(session).list_rules()
            events = await RuleHistoryRepository(session).list_events(
                event_types=[
                    RuleEventType.CREATED,
                    RuleEventType.UPDATED,
                    RuleEventType.ACTIVATED,
                    RuleEventType.DEACTIVATED,
                ],
                before=end_of_day,
            )

        state: Dict[UUID, bool] = {}
        for event in events:
            if event.rule_id in state:
                continue
            active = _active_state_after(RuleHistoryEventRead.model_validate(event))
            if active is not None:
                state[event.rule_id] = active

        active_rules, inactive_rules = [], []
        for rule in rules:
            target = active_rules if state.get(rule.id, False) else inactive_rules
            target.append(RuleRead.model_validate(rule))

        return ActiveRulesOnDay(day=day, active_rules=active_rules, inactive_rules=inactive_rules)
