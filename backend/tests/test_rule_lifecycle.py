"""
Tests for Rule Lifecycle Service

Exercises create/update/toggle/delete against a real SQLite database and
checks the rule row, the version ledger and the history log stay in step.
"""

import asyncio
import copy
import pytest
from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, OperationalError

from tradejournal.db.models.rule import (
    RuleCategory,
    RuleEventType,
    RuleHistoryEvent,
    RuleVersion,
)
from tradejournal.db.repositories.rules import RuleHistoryRepository, RuleVersionRepository
from tradejournal.schemas.rule import ToggledDetails, UpdatedDetails
from tradejournal.services.rule_diff import rule_fields
from tradejournal.services.rule_lifecycle import RuleLifecycleService


@pytest.fixture
async def created_rule(rule_service, sample_rule, base_time):
    """A freshly created, inactive rule."""
    result = await rule_service.create_rule(sample_rule, occurred_at=base_time)
    assert result.success, result.error
    return result.data


class TestCreateRule:
    """Tests for rule creation."""

    @pytest.mark.asyncio
    async def test_create_writes_version_and_event(self, rule_service, history_service, created_rule, count_rows):
        """Test creation yields version 1 and one created event."""
        assert created_rule.name == "Only trade with trend"
        assert created_rule.category == RuleCategory.ENTRY
        assert created_rule.is_active is False
        assert created_rule.description == {"type": "doc", "content": []}

        versions = (await history_service.list_versions(created_rule.id)).data
        assert [v.version_number for v in versions] == [1]

        events = (await history_service.history_for_rule(created_rule.id)).data
        assert len(events) == 1
        assert events[0].event_type == RuleEventType.CREATED
        assert events[0].details.name == "Only trade with trend"
        assert events[0].details.category == RuleCategory.ENTRY
        assert events[0].details.is_active is False
        assert await count_rows(RuleHistoryEvent) == 1

    @pytest.mark.asyncio
    async def test_missing_name(self, rule_service, count_rows):
        """Test a missing name is a validation error and writes nothing."""
        result = await rule_service.create_rule({"category": "Entry"})
        assert not result.success
        assert result.code == "validation_error"
        assert "name" in result.error
        assert await count_rows(RuleVersion) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"name": "   ", "category": "Entry"},
        {"name": "Scalp the open", "category": "Scalping"},
        {"name": "Scalp the open"},
        {"name": "Scalp the open", "category": "Entry", "description": [{"id": "a1", "content": []}]},
        {"name": "Scalp the open", "category": "Entry", "description": {"type": "doc", "content": "text"}},
        {"name": "Scalp the open", "category": "Entry", "description": 42},
        {"name": "Scalp the open", "category": "Entry", "owner": "me"},
    ])
    async def test_invalid_payloads(self, rule_service, payload):
        result = await rule_service.create_rule(payload)
        assert not result.success
        assert result.code == "validation_error"
        assert result.data is None

    @pytest.mark.asyncio
    async def test_create_with_editor_blocks(self, rule_service, history_service, sample_rule, editor_description):
        """Test the editor's block array is accepted and stored as given."""
        result = await rule_service.create_rule({**sample_rule, "description": editor_description})
        assert result.success, result.error
        assert result.data.description == editor_description

        version = (await history_service.get_version(result.data.id, 1)).data
        assert version.description == editor_description

    @pytest.mark.asyncio
    async def test_plain_text_description_becomes_paragraph(self, rule_service, sample_rule):
        """Test a description that is not JSON is kept as one paragraph."""
        result = await rule_service.create_rule({**sample_rule, "description": "Wait for the close"})
        assert result.success, result.error
        assert result.data.description == [
            {"type": "paragraph", "content": [{"type": "text", "text": "Wait for the close"}]},
        ]


class TestUpdateRule:
    """Tests for partial updates."""

    @pytest.mark.asyncio
    async def test_example_scenario(self, rule_service, history_service, created_rule, base_time):
        """Test create → update(active, category) → toggle."""
        rule_id = created_rule.id

        updated = await rule_service.update_rule(
            rule_id, {"is_active": True, "category": "Exit"},
            occurred_at=base_time + timedelta(hours=1),
        )
        assert updated.success
        assert updated.data.is_active is True
        assert updated.data.category == RuleCategory.EXIT

        toggled = await rule_service.toggle_active(rule_id, occurred_at=base_time + timedelta(hours=2))
        assert toggled.success
        assert toggled.data.is_active is False

        versions = (await history_service.list_versions(rule_id)).data
        assert [(v.version_number, v.is_active, v.category) for v in versions] == [
            (1, False, RuleCategory.ENTRY),
            (2, True, RuleCategory.EXIT),
            (3, False, RuleCategory.EXIT),
        ]

        events = list(reversed((await history_service.history_for_rule(rule_id)).data))
        assert [e.event_type for e in events] == [
            RuleEventType.CREATED,
            RuleEventType.UPDATED,
            RuleEventType.DEACTIVATED,
        ]

        update_details = events[1].details
        assert isinstance(update_details, UpdatedDetails)
        assert set(update_details.changes) == {"category", "is_active"}
        assert update_details.changes["category"].from_ == "Entry"
        assert update_details.changes["category"].to == "Exit"
        assert update_details.changes["is_active"].from_ is False
        assert update_details.changes["is_active"].to is True
        assert (update_details.previous_version, update_details.new_version) == (1, 2)

        toggle_details = events[2].details
        assert isinstance(toggle_details, ToggledDetails)
        assert toggle_details.from_ is True
        assert toggle_details.to is False
        assert toggle_details.version_number == 3

    @pytest.mark.asyncio
    async def test_n_updates_give_n_plus_one_versions(self, rule_service, history_service, created_rule, base_time):
        """Test every changing update appends the next version number."""
        for n in range(1, 6):
            result = await rule_service.update_rule(
                created_rule.id, {"name": f"Only trade with trend v{n}"},
                occurred_at=base_time + timedelta(minutes=n),
            )
            assert result.success

        versions = (await history_service.list_versions(created_rule.id)).data
        assert [v.version_number for v in versions] == [1, 2, 3, 4, 5, 6]
        assert versions[-1].name == "Only trade with trend v5"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {},
        {"name": "Only trade with trend"},
        {"name": "Only trade with trend", "category": "Entry", "is_active": False},
        {"description": {"type": "doc", "content": []}},
        {"description": None},
        {"description": []},
        {"description": ""},
    ])
    async def test_identical_update_is_noop(self, rule_service, created_rule, count_rows, payload):
        """Test an update matching the current state writes nothing."""
        result = await rule_service.update_rule(created_rule.id, payload)

        assert result.success
        assert rule_fields(result.data) == rule_fields(created_rule)
        assert await count_rows(RuleVersion, created_rule.id) == 1
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 1

    @pytest.mark.asyncio
    async def test_description_change_records_summaries(self, rule_service, history_service, created_rule, sample_description):
        """Test description changes store summaries, not documents."""
        result = await rule_service.update_rule(created_rule.id, {"description": sample_description})
        assert result.success
        assert result.data.description == sample_description

        event = (await history_service.history_for_rule(created_rule.id)).data[0]
        change = event.details.changes["description"]
        assert change.from_ == {"block_count": 0, "text_preview": ""}
        assert change.to["block_count"] == 2
        assert change.to["text_preview"] == "Only take trades in the direction of the higher ti..."

    @pytest.mark.asyncio
    async def test_editor_blocks_are_summarized_and_compared_deeply(
        self, rule_service, history_service, created_rule, editor_description, count_rows
    ):
        """Test block array descriptions through the change, no-op and restyle paths."""
        result = await rule_service.update_rule(created_rule.id, {"description": editor_description})
        assert result.success, result.error

        event = (await history_service.history_for_rule(created_rule.id)).data[0]
        change = event.details.changes["description"]
        assert change.from_ == {"block_count": 0, "text_preview": ""}
        assert change.to == {"block_count": 3, "text_preview": "Only trade with the trend"}

        same = await rule_service.update_rule(created_rule.id, {"description": copy.deepcopy(editor_description)})
        assert same.success
        assert await count_rows(RuleVersion, created_rule.id) == 2

        # Style change in a nested child block only
        restyled = copy.deepcopy(editor_description)
        restyled[1]["children"][0]["content"][0]["styles"] = {}
        await rule_service.update_rule(created_rule.id, {"description": restyled})
        assert await count_rows(RuleVersion, created_rule.id) == 3
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 3

    @pytest.mark.asyncio
    async def test_mark_only_change_is_detected(self, rule_service, count_rows, created_rule):
        """Test a formatting change counts even when the summary is unchanged."""
        plain = {"type": "doc", "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "Wait for the close"}]},
        ]}
        bold = {"type": "doc", "content": [
            {"type": "paragraph", "content": [
                {"type": "text", "text": "Wait for the close", "marks": [{"type": "bold"}]},
            ]},
        ]}
        await rule_service.update_rule(created_rule.id, {"description": plain})
        result = await rule_service.update_rule(created_rule.id, {"description": bold})

        assert result.success
        assert await count_rows(RuleVersion, created_rule.id) == 3

    @pytest.mark.asyncio
    async def test_active_change_through_update_stays_updated_event(self, rule_service, history_service, created_rule):
        """Test is_active changed by update never produces activated/deactivated."""
        await rule_service.update_rule(created_rule.id, {"is_active": True})

        events = (await history_service.history_for_rule(created_rule.id)).data
        assert [e.event_type for e in events] == [RuleEventType.UPDATED, RuleEventType.CREATED]

    @pytest.mark.asyncio
    async def test_unknown_rule(self, rule_service, count_rows):
        result = await rule_service.update_rule(uuid4(), {"name": "Ghost"})
        assert not result.success
        assert result.code == "not_found"
        assert await count_rows(RuleVersion) == 0

    @pytest.mark.asyncio
    async def test_malformed_rule_id(self, rule_service):
        result = await rule_service.update_rule("not-a-uuid", {"name": "Ghost"})
        assert not result.success
        assert result.code == "validation_error"

    @pytest.mark.asyncio
    async def test_invalid_category(self, rule_service, created_rule, count_rows):
        result = await rule_service.update_rule(created_rule.id, {"category": "Gambling"})
        assert not result.success
        assert result.code == "validation_error"
        assert await count_rows(RuleVersion, created_rule.id) == 1

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self, rule_service, created_rule, count_rows):
        """Test a misspelled field fails instead of passing as a no-op."""
        result = await rule_service.update_rule(created_rule.id, {"nmae": "Renamed"})
        assert not result.success
        assert result.code == "validation_error"
        assert "nmae" in result.error
        assert await count_rows(RuleVersion, created_rule.id) == 1


class TestToggleActive:
    """Tests for the dedicated activation path."""

    @pytest.mark.asyncio
    async def test_toggle_writes_one_version_and_event(self, rule_service, history_service, created_rule, count_rows):
        """Test each toggle adds exactly one version and one typed event."""
        activated = await rule_service.toggle_active(created_rule.id)
        assert activated.success
        assert activated.data.is_active is True
        assert await count_rows(RuleVersion, created_rule.id) == 2
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 2

        event = (await history_service.history_for_rule(created_rule.id)).data[0]
        assert event.event_type == RuleEventType.ACTIVATED
        assert event.details.event_type == "activated"
        assert event.details.from_ is False
        assert event.details.to is True
        assert event.details.version_number == 2

    @pytest.mark.asyncio
    async def test_toggle_unknown_rule(self, rule_service):
        result = await rule_service.toggle_active(uuid4())
        assert not result.success
        assert result.code == "not_found"


class TestDeleteRule:
    """Tests for deletion."""

    @pytest.mark.asyncio
    async def test_delete_keeps_history_and_versions(self, rule_service, history_service, created_rule, base_time):
        """Test history stays readable after the rule row is gone."""
        await rule_service.toggle_active(created_rule.id, occurred_at=base_time + timedelta(hours=1))
        deleted = await rule_service.delete_rule(created_rule.id, occurred_at=base_time + timedelta(hours=2))
        assert deleted.success
        assert deleted.data.name == "Only trade with trend"

        missing = await history_service.get_rule(created_rule.id)
        assert not missing.success
        assert missing.code == "not_found"

        events = (await history_service.history_for_rule(created_rule.id)).data
        assert [e.event_type for e in events] == [
            RuleEventType.DELETED,
            RuleEventType.ACTIVATED,
            RuleEventType.CREATED,
        ]
        assert all(e.rule_name == "Only trade with trend" for e in events)
        assert all(e.category is None for e in events)
        assert events[0].details.final_state.is_active is True
        assert events[0].details.version_number == 2

        versions = (await history_service.list_versions(created_rule.id)).data
        assert [v.version_number for v in versions] == [1, 2]

    @pytest.mark.asyncio
    async def test_delete_unknown_rule(self, rule_service):
        result = await rule_service.delete_rule(uuid4())
        assert not result.success
        assert result.code == "not_found"


class TestVersionReplay:
    """Tests that the ledger reproduces the current row."""

    @pytest.mark.asyncio
    async def test_last_version_matches_rule(self, rule_service, history_service, created_rule, sample_description):
        await rule_service.update_rule(created_rule.id, {"description": sample_description})
        await rule_service.toggle_active(created_rule.id)
        await rule_service.update_rule(created_rule.id, {"name": "Trade with the trend", "category": "Setup"})

        current = (await history_service.get_rule(created_rule.id)).data
        replayed = (await history_service.replay_versions(created_rule.id)).data

        assert replayed.version_number == 4
        assert rule_fields(replayed) == rule_fields(current)


class TestConcurrency:
    """Tests for version numbering under concurrent writers."""

    @pytest.mark.asyncio
    async def test_concurrent_updates_get_consecutive_versions(self, rule_service, history_service, created_rule, sample_description):
        """Test K concurrent updates on one rule produce K consecutive versions."""
        payloads = [
            {"name": "Only trade with the trend"},
            {"category": "Setup"},
            {"description": sample_description},
            {"is_active": True},
        ]
        results = await asyncio.gather(*(
            rule_service.update_rule(created_rule.id, payload) for payload in payloads
        ))
        assert all(result.success for result in results)

        versions = (await history_service.list_versions(created_rule.id)).data
        assert [v.version_number for v in versions] == [1, 2, 3, 4, 5]

        final = versions[-1]
        assert final.name == "Only trade with the trend"
        assert final.category == RuleCategory.SETUP
        assert final.description == sample_description
        assert final.is_active is True

    @pytest.mark.asyncio
    async def test_version_collision_is_retried(self, rule_service, history_service, created_rule, count_rows):
        """Test a stale version number is re-derived instead of surfaced."""
        original = RuleVersionRepository.next_version_number
        calls = []

        async def stale_once(self, rule_id):
            calls.append(rule_id)
            if len(calls) == 1:
                return 1  # already taken by the created version
            return await original(self, rule_id)

        with patch.object(RuleVersionRepository, "next_version_number", stale_once):
            result = await rule_service.update_rule(created_rule.id, {"name": "Renamed"})

        assert result.success
        assert len(calls) == 2
        versions = (await history_service.list_versions(created_rule.id)).data
        assert [v.version_number for v in versions] == [1, 2]
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, session_factory, created_rule, history_service, count_rows):
        """Test a persistent collision ends in a persistence error with nothing written."""
        service = RuleLifecycleService(session_factory, max_version_retries=2)
        attempts = []

        async def always_stale(self, rule_id):
            attempts.append(rule_id)
            return 1

        with patch.object(RuleVersionRepository, "next_version_number", always_stale):
            result = await service.toggle_active(created_rule.id)

        assert not result.success
        assert result.code == "persistence_error"
        assert len(attempts) == 2

        current = (await history_service.get_rule(created_rule.id)).data
        assert current.is_active is False
        assert await count_rows(RuleVersion, created_rule.id) == 1
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 1


class TestAtomicity:
    """Tests that a failed write group leaves no partial state."""

    @pytest.mark.asyncio
    async def test_history_failure_rolls_back_update(self, rule_service, history_service, created_rule, count_rows):
        async def broken_add(self, obj):
            raise OperationalError("INSERT INTO rule_history_events", {}, Exception("disk I/O error"))

        with patch.object(RuleHistoryRepository, "add", broken_add):
            result = await rule_service.update_rule(created_rule.id, {"name": "Never saved"})

        assert not result.success
        assert result.code == "persistence_error"
        assert result.error == "Failed to update rule"

        current = (await history_service.get_rule(created_rule.id)).data
        assert current.name == "Only trade with trend"
        assert await count_rows(RuleVersion, created_rule.id) == 1
        assert await count_rows(RuleHistoryEvent, created_rule.id) == 1

    @pytest.mark.asyncio
    async def test_history_failure_rolls_back_create(self, rule_service, history_service, sample_rule, count_rows):
        async def broken_add(self, obj):
            raise OperationalError("INSERT INTO rule_history_events", {}, Exception("disk I/O error"))

        with patch.object(RuleHistoryRepository, "add", broken_add):
            result = await rule_service.create_rule(sample_rule)

        assert not result.success
        assert result.code == "persistence_error"
        assert (await history_service.list_rules()).data == []
        assert await count_rows(RuleVersion) == 0

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_not_retried(self, rule_service, sample_rule, count_rows):
        """Test only version number collisions are retried."""
        calls = []

        async def rejected_add(self, obj):
            calls.append(obj)
            raise IntegrityError(
                "INSERT INTO rule_history_events", {},
                Exception("NOT NULL constraint failed: rule_history_events.rule_name"),
            )

        with patch.object(RuleHistoryRepository, "add", rejected_add):
            result = await rule_service.create_rule(sample_rule)

        assert not result.success
        assert result.code == "persistence_error"
        assert "integrity violation" in result.error
        assert "version number conflict" not in result.error
        assert len(calls) == 1
        assert await count_rows(RuleVersion) == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
