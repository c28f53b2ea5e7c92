"""
Rule History Fixture Generator
TradeJournal Backend

Development-only tool that fills an empty journal with plausible rule
activity spread over the past few weeks. Every change goes through
``RuleLifecycleService`` with a backdated ``occurred_at``, so the generated
versions and history obey the same invariants as real ones.

Randomness comes from a private ``random.Random``; the same seed and ``now``
always produce the same plan.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from loguru import logger

from tradejournal.core.config import settings
from tradejournal.db.models.rule import RuleCategory
from tradejournal.schemas.block_document import BlockDocument
from tradejournal.services.rule_lifecycle import RuleLifecycleService, as_utc


def _doc(*blocks: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "doc", "content": list(blocks)}


def _paragraph(text: str) -> Dict[str, Any]:
    return {"type": "paragraph", "content": [{"type": "text", "text": text}]}


def _heading(text: str, level: int = 2) -> Dict[str, Any]:
    return {"type": "heading", "attrs": {"level": level}, "content": [{"type": "text", "text": text}]}


def _bullets(*items: str) -> Dict[str, Any]:
    return {
        "type": "bulletList",
        "content": [{"type": "listItem", "content": [_paragraph(item)]} for item in items],
    }


def _editor_blocks(*texts: str) -> List[Dict[str, Any]]:
    """Paragraphs in the editor's block array form."""
    return [
        {
            "id": f"block-{index}",
            "type": "paragraph",
            "props": {"textColor": "default", "backgroundColor": "default", "textAlignment": "left"},
            "content": [{"type": "text", "text": text, "styles": {}}],
            "children": [],
        }
        for index, text in enumerate(texts, start=1)
    ]


SAMPLE_DESCRIPTIONS: List[BlockDocument] = [
    _doc(_paragraph("Enter the market only when price breaks out of a key level.")),
    _doc(
        _paragraph("Wait for confirmation before entering a trade."),
        _paragraph("Look for at least two confirming signals."),
    ),
    _doc(
        _heading("Risk Management Rule"),
        _paragraph("Never risk more than 2% of your account on a single trade."),
    ),
    _doc(
        _paragraph("Always use a stop loss to protect your capital."),
        _bullets("Place it beyond the last swing", "Never widen it once the trade is live"),
    ),
    _doc(
        _paragraph("Take partial profits at the first target and trail the remainder."),
    ),
    _doc(
        _heading("Session discipline", level=3),
        _paragraph("Stop trading for the day after two consecutive losing trades."),
        _paragraph("Review the journal before the next session."),
    ),
    _editor_blocks(
        "Journal every trade within the hour.",
        "Note the setup and how the trade was managed.",
    ),
]

SAMPLE_RULES: List[Dict[str, Any]] = [
    {"name": "Only trade with trend", "category": RuleCategory.ENTRY},
    {"name": "2:1 Risk-Reward ratio minimum", "category": RuleCategory.RISK_MANAGEMENT},
    {"name": "Wait for candle close confirmation", "category": RuleCategory.ENTRY},
    {"name": "Move stop to break-even at 1R", "category": RuleCategory.EXIT},
    {"name": "No trading after two consecutive losses", "category": RuleCategory.PSYCHOLOGY},
    {"name": "Mark key levels before the open", "category": RuleCategory.ANALYSIS},
    {"name": "Pullback to rising 20 EMA", "category": RuleCategory.SETUP},
]

CATEGORY_CYCLE = list(RuleCategory)


@dataclass
class FixtureStep:
    """One planned lifecycle call."""
    kind: str  # create, update, toggle
    rule_index: int
    at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FixtureReport:
    created: int = 0
    updated: int = 0
    toggled: int = 0
    skipped: int = 0
    rule_ids: List[UUID] = field(default_factory=list)


@dataclass
class _SimulatedRule:
    name: str
    category: RuleCategory
    description_index: int
    is_active: bool = False
    revision: int = 0


class RuleHistoryFixtureGenerator:
    """
    Plans and applies backdated rule activity.

    Usage:
        generator = RuleHistoryFixtureGenerator(service, seed=7)
        report = await generator.generate()
    """

    def __init__(
        self,
        service: RuleLifecycleService,
        *,
        seed: Optional[int] = None,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
        templates: Optional[Sequence[Dict[str, Any]]] = None,
    ):
        rule_settings = settings.rules
        self.service = service
        self.seed = seed if seed is not None else rule_settings.fixture_seed
        self.days = days or rule_settings.fixture_days
        self.now = as_utc(now)
        self.templates = list(templates or SAMPLE_RULES)

    # =========================================================================
    # Planning
    # =========================================================================

    def _advance(self, rng: random.Random, after: datetime) -> Optional[datetime]:
        remaining_hours = int((self.now - after).total_seconds() // 3600)
        if remaining_hours < 2:
            return None
        step = rng.randint(1, min(remaining_hours - 1, 24 * 5))
        return after + timedelta(hours=step, minutes=rng.randint(0, 59))

    def _plan_update(self, rng: random.Random, state: _SimulatedRule, base_name: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if rng.random() > 0.7:
            state.revision += 1
            state.name = f"{base_name} (rev {state.revision})"
            payload["name"] = state.name
        if rng.random() > 0.8:
            position = CATEGORY_CYCLE.index(state.category)
            state.category = CATEGORY_CYCLE[(position + 1) % len(CATEGORY_CYCLE)]
            payload["category"] = state.category
        if rng.random() > 0.6:
            state.is_active = not state.is_active
            payload["is_active"] = state.is_active
        if rng.random() > 0.4 or not payload:
            # Any index except the current one
            index = rng.randrange(len(SAMPLE_DESCRIPTIONS) - 1)
            if index >= state.description_index:
                index += 1
            state.description_index = index
            payload["description"] = SAMPLE_DESCRIPTIONS[index]
        return payload

    def build_plan(self) -> List[FixtureStep]:
        """Chronological list of lifecycle calls; deterministic for a given seed and now."""
        rng = random.Random(self.seed)
        steps: List[FixtureStep] = []

        for index, template in enumerate(self.templates):
            created_at = self.now - timedelta(
                days=rng.randint(self.days // 2, self.days - 1),
                hours=rng.randint(0, 23),
            )
            description_index = rng.randrange(len(SAMPLE_DESCRIPTIONS))
            state = _SimulatedRule(
                name=template["name"],
                category=RuleCategory(template["category"]),
                description_index=description_index,
            )
            steps.append(FixtureStep(
                kind="create",
                rule_index=index,
                at=created_at,
                payload={
                    "name": state.name,
                    "category": state.category,
                    "description": template.get("description", SAMPLE_DESCRIPTIONS[description_index]),
                    "is_active": False,
                },
            ))

            cursor = created_at
            for _ in range(rng.randint(3, 6)):
                cursor = self._advance(rng, cursor)
                if cursor is None:
                    break
                if rng.random() < 0.35:
                    state.is_active = not state.is_active
                    steps.append(FixtureStep(kind="toggle", rule_index=index, at=cursor))
                else:
                    steps.append(FixtureStep(
                        kind="update",
                        rule_index=index,
                        at=cursor,
                        payload=self._plan_update(rng, state, template["name"]),
                    ))

        steps.sort(key=lambda step: step.at)
        return steps

    # =========================================================================
    # Applying
    # =========================================================================

    async def generate(self) -> FixtureReport:
        """Apply the plan through the lifecycle service."""
        report = FixtureReport()
        rule_ids: Dict[int, UUID] = {}

        for step in self.build_plan():
            if step.kind == "create":
                result = await self.service.create_rule(step.payload, occurred_at=step.at)
                if result.success:
                    rule_ids[step.rule_index] = result.data.id
                    report.rule_ids.append(result.data.id)
                    report.created += 1
                else:
                    logger.warning(f"Fixture create failed: {result.error}")
                    report.skipped += 1
                continue

            rule_id = rule_ids.get(step.rule_index)
            if rule_id is None:
                report.skipped += 1
                continue

            if step.kind == "toggle":
                result = await self.service.toggle_active(rule_id, occurred_at=step.at)
                counter = "toggled"
            else:
                result = await self.service.update_rule(rule_id, step.payload, occurred_at=step.at)
                counter = "updated"

            if result.success:
                setattr(report, counter, getattr(report, counter) + 1)
            else:
                logger.warning(f"Fixture {step.kind} failed for {rule_id}: {result.error}")
                report.skipped += 1

        logger.info(
            f"Generated rule history: {report.created} rules, "
            f"{report.updated} updates, {report.toggled} toggles"
        )
        return report
