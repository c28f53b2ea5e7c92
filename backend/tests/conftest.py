"""
Test configuration and shared fixtures for TradeJournal backend tests.

Every test gets its own SQLite database file; the module-level engine in
``tradejournal.db.session`` is pointed at an in-memory database so nothing
reaches a real server.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"

import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List

from tradejournal.db.models.rule import Rule, RuleHistoryEvent, RuleVersion
from tradejournal.db.repositories.rules import (
    RuleHistoryRepository,
    RuleRepository,
    RuleVersionRepository,
)
from tradejournal.db.session import build_engine, build_session_factory, init_db
from tradejournal.services.rule_history import RuleHistoryService
from tradejournal.services.rule_lifecycle import RuleLifecycleService


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """Async engine on a fresh SQLite file with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'journal.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model, optionally filtered by rule_id."""
    repositories = {
        Rule: RuleRepository,
        RuleVersion: RuleVersionRepository,
        RuleHistoryEvent: RuleHistoryRepository,
    }

    async def _count(model, rule_id=None) -> int:
        filters = {"rule_id": rule_id} if rule_id is not None else None
        async with session_factory() as session:
            return await repositories[model](session).count(filters)
    return _count


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def rule_service(session_factory):
    """Lifecycle service bound to the test database."""
    return RuleLifecycleService(session_factory)


@pytest.fixture
def history_service(session_factory):
    """History service bound to the test database."""
    return RuleHistoryService(session_factory)


# =============================================================================
# Sample Data
# =============================================================================

@pytest.fixture
def base_time():
    """Fixed Monday morning used as the first event time."""
    return datetime(2025, 1, 6, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def sample_rule() -> Dict[str, Any]:
    return {
        "name": "Only trade with trend",
        "category": "Entry",
        "is_active": False,
    }


@pytest.fixture
def sample_description() -> Dict[str, Any]:
    return {
        "type": "doc",
        "content": [
            {
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "Only take trades "},
                    {"type": "text", "text": "in the direction", "marks": [{"type": "bold"}]},
                    {"type": "text", "text": " of the higher timeframe trend."},
                ],
            },
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": "Check the daily chart first."}],
            },
        ],
    }


@pytest.fixture
def editor_description() -> List[Dict[str, Any]]:
    """Description as saved by the rich-text editor: a top-level block array."""
    return [
        {
            "id": "a1",
            "type": "paragraph",
            "props": {"textColor": "default", "backgroundColor": "default", "textAlignment": "left"},
            "content": [
                {"type": "text", "text": "Only trade ", "styles": {}},
                {"type": "text", "text": "with the trend", "styles": {"bold": True}},
            ],
            "children": [],
        },
        {
            "id": "a2",
            "type": "bulletListItem",
            "props": {"textColor": "default", "backgroundColor": "default", "textAlignment": "left"},
            "content": [{"type": "text", "text": "Check the daily chart", "styles": {}}],
            "children": [
                {
                    "id": "a3",
                    "type": "paragraph",
                    "props": {},
                    "content": [{"type": "text", "text": "and the weekly", "styles": {"italic": True}}],
                    "children": [],
                },
            ],
        },
        {"id": "a4", "type": "paragraph", "props": {}, "content": [], "children": []},
    ]


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
