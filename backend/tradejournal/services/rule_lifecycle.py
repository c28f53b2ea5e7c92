"""
Rule Lifecycle Service
TradeJournal Backend

Single authority for mutating rules. Each operation writes the rule row, the
version ledger entry and the history log entry inside one transaction:

    create  → Rule + Version #1 + "created"
    update  → Rule + Version #n+1 + "updated"   (only when a field changed)
    toggle  → Rule + Version #n+1 + "activated" | "deactivated"
    delete  → "deleted" + Rule removed           (versions and history kept)

Version numbers are "max for the rule + 1". Calls for the same rule are
serialized in-process by a per-rule lock and across processes by a row lock
plus the unique (rule_id, version_number) constraint; a collision is retried
with a freshly derived number a bounded number of times.
"""

import asyncio
import uuid
import weakref
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar, Union
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradejournal.core.config import settings
from tradejournal.core.exceptions import (
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from tradejournal.db.models.rule import (
    Rule,
    RuleEventType,
    RuleHistoryEvent,
    RuleVersion,
)
from tradejournal.db.repositories.rules import (
    RuleHistoryRepository,
    RuleRepository,
    RuleVersionRepository,
)
from tradejournal.schemas.block_document import summarize_description
from tradejournal.schemas.rule import (
    CreatedDetails,
    DeletedDetails,
    FinalState,
    RuleCreate,
    RuleRead,
    RuleUpdate,
    ToggledDetails,
    UpdatedDetails,
)
from tradejournal.services.error_handler import returns_action_result
from tradejournal.services.rule_diff import diff_rule_fields, rule_fields


SchemaType = TypeVar("SchemaType", bound=BaseModel)
ResultType = TypeVar("ResultType")

# PostgreSQL names the constraint; SQLite names the columns
VERSION_CONFLICT_MARKERS = ("uq_rule_version_number", "rule_versions.version_number")


def as_utc(moment: Optional[datetime]) -> datetime:
    """Normalize a timestamp to aware UTC; naive values are taken as UTC."""
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def validate_payload(schema: Type[SchemaType], data: Any) -> SchemaType:
    """Validate a dict (or schema instance) and raise the domain ValidationError."""
    if isinstance(data, schema):
        return data
    if data is None:
        data = {}
    try:
        return schema.model_validate(data)
    except SchemaValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'payload'}: {error['msg']}"
            for error in e.errors()
        )
        raise ValidationError(problems, context={"errors": e.errors()}) from e


def parse_rule_id(rule_id: Union[UUID, str]) -> UUID:
    if isinstance(rule_id, UUID):
        return rule_id
    try:
        return UUID(str(rule_id))
    except ValueError as e:
        raise ValidationError(f"Invalid rule id: {rule_id!r}") from e


def _details(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def is_version_conflict(error: IntegrityError) -> bool:
    """True when the violation is the unique (rule_id, version_number) constraint."""
    message = str(error.orig)
    return any(marker in message for marker in VERSION_CONFLICT_MARKERS)


class RuleLifecycleService:
    """
    Lifecycle coordinator for rules.

    Usage:
        service = RuleLifecycleService(AsyncSessionLocal)
        result = await service.create_rule({"name": "Only trade with trend", "category": "Entry"})
        if result.success:
            await service.toggle_active(result.data.id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        *,
        max_version_retries: Optional[int] = None,
        preview_length: Optional[int] = None,
    ):
        rule_settings = settings.rules
        self._session_factory = session_factory
        self.max_version_retries = max_version_retries or rule_settings.max_version_retries
        self.preview_length = preview_length or rule_settings.preview_length
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _lock_for(self, rule_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(rule_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[rule_id] = lock
        return lock

    async def _run_unit_of_work(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[ResultType]],
        rule_id: Optional[UUID] = None,
    ) -> ResultType:
        if rule_id is None:
            return await self._with_retries(operation, work)
        async with self._lock_for(rule_id):
            return await self._with_retries(operation, work)

    async def _with_retries(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[ResultType]],
    ) -> ResultType:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await work(session)
            except IntegrityError as e:
                if not is_version_conflict(e):
                    raise PersistenceError(
                        f"Failed to {operation}: integrity violation",
                        context={"error": str(e.orig)},
                    ) from e
                if attempt >= self.max_version_retries:
                    raise PersistenceError(
                        f"Failed to {operation}: version number conflict after {attempt} attempts",
                        context={"attempts": attempt},
                    ) from e
                logger.warning(
                    f"Version number conflict during {operation} "
                    f"(attempt {attempt}/{self.max_version_retries}), retrying"
                )

    @staticmethod
    def _snapshot(rule: Rule, version_number: int, taken_at: datetime) -> RuleVersion:
        return RuleVersion(
            id=uuid.uuid4(),
            rule_id=rule.id,
            version_number=version_number,
            name=rule.name,
            category=rule.category,
            description=rule.description,
            is_active=rule.is_active,
            created_at=taken_at,
        )

    @staticmethod
    async def _load(rules: RuleRepository, rule_id: UUID) -> Rule:
        rule = await rules.get_for_update(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule {rule_id} not found", context={"rule_id": str(rule_id)})
        return rule

    # =========================================================================
    # Operations
    # =========================================================================

    @returns_action_result("create rule")
    async def create_rule(
        self,
        data: Union[RuleCreate, Dict[str, Any]],
        *,
        occurred_at: Optional[datetime] = None,
    ) -> RuleRead:
        """
        Create a rule with version 1 and a ``created`` history event.

        Args:
            data: name, category, optional description and is_active
            occurred_at: event/snapshot time, defaults to now
        """
        payload = validate_payload(RuleCreate, data)
        timestamp = as_utc(occurred_at)

        async def work(session: AsyncSession) -> RuleRead:
            rules = RuleRepository(session)
            rule = await rules.add(Rule(
                id=uuid.uuid4(),
                name=payload.name,
                category=payload.category,
                description=payload.description,
                is_active=payload.is_active,
                created_at=timestamp,
            ))
            await RuleVersionRepository(session).add(self._snapshot(rule, 1, timestamp))
            await RuleHistoryRepository(session).add(RuleHistoryEvent(
                id=uuid.uuid4(),
                rule_id=rule.id,
                rule_name=rule.name,
                event_type=RuleEventType.CREATED,
                timestamp=timestamp,
                details=_details(CreatedDetails(
                    name=rule.name,
                    category=rule.category,
                    is_active=rule.is_active,
                    version_number=1,
                )),
            ))
            return RuleRead.model_validate(rule)

        rule = await self._run_unit_of_work("create rule", work)
        logger.info(f"Created rule '{rule.name}' ({rule.id}) [{rule.category.value}]")
        return rule

    @returns_action_result("update rule")
    async def update_rule(
        self,
        rule_id: Union[UUID, str],
        data: Union[RuleUpdate, Dict[str, Any], None],
        *,
        occurred_at: Optional[datetime] = None,
    ) -> RuleRead:
        """
        Apply a partial update.

        A new version and one ``updated`` event are written only when at least
        one field differs. A change of is_active made here stays inside the
        ``updated`` event; only ``toggle_active`` emits activated/deactivated.
        """
        rule_id = parse_rule_id(rule_id)
        changes = validate_payload(RuleUpdate, data).changes()
        timestamp = as_utc(occurred_at)

        async def work(session: AsyncSession) -> RuleRead:
            rules = RuleRepository(session)
            versions = RuleVersionRepository(session)
            rule = await self._load(rules, rule_id)

            current = rule_fields(rule)
            diff = diff_rule_fields(current, {**current, **changes}, self.preview_length)

            if not diff:
                logger.debug(f"Update of rule {rule_id} changed nothing")
                return RuleRead.model_validate(rule)

            # Equal documents may differ in form; keep the stored one
            for field in diff:
                setattr(rule, field, changes[field])
            rule.updated_at = timestamp
            await session.flush()

            new_version = await versions.next_version_number(rule.id)
            await versions.add(self._snapshot(rule, new_version, timestamp))
            await RuleHistoryRepository(session).add(RuleHistoryEvent(
                id=uuid.uuid4(),
                rule_id=rule.id,
                rule_name=rule.name,
                event_type=RuleEventType.UPDATED,
                timestamp=timestamp,
                details=_details(UpdatedDetails(
                    changes=diff,
                    previous_version=new_version - 1,
                    new_version=new_version,
                )),
            ))
            logger.info(
                f"Updated rule '{rule.name}' ({rule.id}) to v{new_version}: "
                f"{', '.join(diff)}"
            )
            return RuleRead.model_validate(rule)

        return await self._run_unit_of_work("update rule", work, rule_id=rule_id)

    @returns_action_result("toggle rule")
    async def toggle_active(
        self,
        rule_id: Union[UUID, str],
        *,
        occurred_at: Optional[datetime] = None,
    ) -> RuleRead:
        """Flip is_active, writing one version and one activated/deactivated event."""
        rule_id = parse_rule_id(rule_id)
        timestamp = as_utc(occurred_at)

        async def work(session: AsyncSession) -> RuleRead:
            rules = RuleRepository(session)
            versions = RuleVersionRepository(session)
            rule = await self._load(rules, rule_id)

            was_active = rule.is_active
            rule.is_active = not was_active
            rule.updated_at = timestamp
            await session.flush()

            version_number = await versions.next_version_number(rule.id)
            await versions.add(self._snapshot(rule, version_number, timestamp))

            event_type = RuleEventType.ACTIVATED if rule.is_active else RuleEventType.DEACTIVATED
            await RuleHistoryRepository(session).add(RuleHistoryEvent(
                id=uuid.uuid4(),
                rule_id=rule.id,
                rule_name=rule.name,
                event_type=event_type,
                timestamp=timestamp,
                details=_details(ToggledDetails(
                    event_type=event_type.value,
                    from_=was_active,
                    to=rule.is_active,
                    version_number=version_number,
                )),
            ))
            logger.info(f"Rule '{rule.name}' ({rule.id}) {event_type.value} at v{version_number}")
            return RuleRead.model_validate(rule)

        return await self._run_unit_of_work("toggle rule", work, rule_id=rule_id)

    @returns_action_result("delete rule")
    async def delete_rule(
        self,
        rule_id: Union[UUID, str],
        *,
        occurred_at: Optional[datetime] = None,
    ) -> RuleRead:
        """
        Remove the rule row and append a ``deleted`` event with its final state.

        Versions and earlier history events are retained; the denormalized
        rule_name keeps them readable.
        """
        rule_id = parse_rule_id(rule_id)
        timestamp = as_utc(occurred_at)

        async def work(session: AsyncSession) -> RuleRead:
            rules = RuleRepository(session)
            rule = await self._load(rules, rule_id)
            final = RuleRead.model_validate(rule)

            latest_version = await RuleVersionRepository(session).latest_version_number(rule.id)
            await RuleHistoryRepository(session).add(RuleHistoryEvent(
                id=uuid.uuid4(),
                rule_id=rule.id,
                rule_name=rule.name,
                event_type=RuleEventType.DELETED,
                timestamp=timestamp,
                details=_details(DeletedDetails(
                    final_state=FinalState(
                        name=rule.name,
                        category=rule.category,
                        is_active=rule.is_active,
                        description=summarize_description(rule.description, self.preview_length),
                    ),
                    version_number=latest_version,
                )),
            ))
            await rules.delete(rule)
            logger.info(f"Deleted rule '{final.name}' ({final.id})")
            return final

        return await self._run_unit_of_work("delete rule", work, rule_id=rule_id)
