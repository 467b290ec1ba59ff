"""Map provider category/tag vocabulary onto the activity type catalog."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.db.models import ActivityType, EventCategoryMapping

DEFAULT_TYPE_NAME = "Other"


@dataclass(frozen=True)
class CategoryRule:
    category: str | None
    tag: str | None
    activity_type_id: int
    confidence: float


class EventClassifier:
    """Category match first, then tag match, each by descending confidence.

    Matching is exact and case-insensitive. Unmatched events fall back to
    the "Other" type.
    """

    def __init__(self, rules: Sequence[CategoryRule], default_type_id: int | None) -> None:
        ordered = sorted(rules, key=lambda r: r.confidence, reverse=True)
        self._by_category = [r for r in ordered if r.category]
        self._by_tag = [r for r in ordered if r.tag and not r.category]
        self.default_type_id = default_type_id

    def classify(self, category: str | None, tags: Sequence[str] = ()) -> int | None:
        if category:
            wanted = category.strip().lower()
            for rule in self._by_category:
                if rule.category.lower() == wanted:  # type: ignore[union-attr]
                    return rule.activity_type_id
        lowered = {t.strip().lower() for t in tags if t}
        if lowered:
            for rule in self._by_tag:
                if rule.tag.lower() in lowered:  # type: ignore[union-attr]
                    return rule.activity_type_id
        return self.default_type_id


async def load_classifier(db: AsyncSession, source: str) -> EventClassifier:
    """Build a classifier from the mapping table for one source."""
    rows = await db.execute(select(EventCategoryMapping).where(EventCategoryMapping.source == source))
    rules = [
        CategoryRule(
            category=m.category,
            tag=m.tag,
            activity_type_id=m.activity_type_id,
            confidence=m.confidence,
        )
        for m in rows.scalars()
    ]
    default = await db.execute(select(ActivityType.id).where(ActivityType.name == DEFAULT_TYPE_NAME))
    return EventClassifier(rules, default.scalar_one_or_none())
