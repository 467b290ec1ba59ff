"""Reference data seed: activity types, level milestones, badges, event category mappings.

All seeders are idempotent upserts keyed on natural names, so they run on
every startup.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gtg.db.models import ActivityType, Badge, EventCategoryMapping, LevelMilestone
from gtg.db.upsert import insert_for

logger = logging.getLogger(__name__)

ACTIVITY_TYPE_SEED_DATA: list[dict] = [
    {"name": "Hiking", "icon": "figure.hiking"},
    {"name": "Running", "icon": "figure.run"},
    {"name": "Cycling", "icon": "bicycle"},
    {"name": "Swimming", "icon": "figure.pool.swim"},
    {"name": "Climbing", "icon": "figure.climbing"},
    {"name": "Kayaking", "icon": "oar.2.crossed"},
    {"name": "Camping", "icon": "tent.fill"},
    {"name": "Skiing", "icon": "snowflake"},
    {"name": "Surfing", "icon": "water.waves"},
    {"name": "Walking", "icon": "figure.walk"},
    {"name": "Other", "icon": "figure.outdoor.cycle"},
    {"name": "Coffee", "icon": "cup.and.saucer.fill"},
    # Event-oriented types used when classifying external events
    {"name": "Sports", "icon": "sportscourt.fill"},
    {"name": "Concert", "icon": "music.note"},
    {"name": "Arts & Theatre", "icon": "theatermasks.fill"},
    {"name": "Family", "icon": "figure.2.and.child.holdinghands"},
    {"name": "Festival", "icon": "party.popper.fill"},
]

MILESTONE_SEED_DATA: list[dict] = [
    {"milestone_level": 1, "name": "Sprout", "description": "Taking your first steps outdoors", "icon": "leaf.fill"},
    {"milestone_level": 5, "name": "Seedling", "description": "Starting to grow", "icon": "leaf.circle.fill"},
    {"milestone_level": 10, "name": "Grass Toucher", "description": "Getting comfortable outside", "icon": "tree.fill"},
    {"milestone_level": 25, "name": "Enthusiast", "description": "A regular outdoor enthusiast", "icon": "tree.circle.fill"},
    {"milestone_level": 50, "name": "Explorer", "description": "Exploring new paths", "icon": "figure.hiking"},
    {"milestone_level": 75, "name": "Naturalist", "description": "Dedicated to outdoor life", "icon": "globe.americas.fill"},
    {"milestone_level": 100, "name": "Trailblazer", "description": "Blazing new trails", "icon": "flag.fill"},
    {"milestone_level": 500, "name": "Legend", "description": "A true outdoor legend", "icon": "crown.fill"},
]

# specific_activity badges name their activity type; the id is resolved at seed time.
BADGE_SEED_DATA: list[dict] = [
    # Activity count
    {"name": "First Steps", "description": "Complete your first activity", "category": "activity_count",
     "icon": "figure.walk", "criteria": {"type": "total_activities", "count": 1}, "rarity": "common",
     "display_order": 1},
    {"name": "Getting Started", "description": "Complete 5 activities", "category": "activity_count",
     "icon": "leaf.fill", "criteria": {"type": "total_activities", "count": 5}, "rarity": "common",
     "display_order": 2},
    {"name": "Committed", "description": "Complete 25 activities", "category": "activity_count",
     "icon": "flame.fill", "criteria": {"type": "total_activities", "count": 25}, "rarity": "rare",
     "display_order": 3},
    {"name": "Dedicated", "description": "Complete 50 activities", "category": "activity_count",
     "icon": "star.fill", "criteria": {"type": "total_activities", "count": 50}, "rarity": "rare",
     "display_order": 4},
    {"name": "Century Club", "description": "Complete 100 activities", "category": "activity_count",
     "icon": "star.circle.fill", "criteria": {"type": "total_activities", "count": 100}, "rarity": "epic",
     "display_order": 5},
    {"name": "Legendary", "description": "Complete 500 activities", "category": "activity_count",
     "icon": "crown.fill", "criteria": {"type": "total_activities", "count": 500}, "rarity": "legendary",
     "display_order": 6},
    # Activity type
    {"name": "Peak Performer", "description": "Complete 10 hiking activities", "category": "activity_type",
     "icon": "mountain.2.fill", "criteria": {"type": "specific_activity", "activity_type": "Hiking", "count": 10},
     "rarity": "rare", "display_order": 10},
    {"name": "Marathon Runner", "description": "Complete 20 running activities", "category": "activity_type",
     "icon": "figure.run", "criteria": {"type": "specific_activity", "activity_type": "Running", "count": 20},
     "rarity": "rare", "display_order": 11},
    {"name": "Cycling Enthusiast", "description": "Complete 15 cycling activities", "category": "activity_type",
     "icon": "bicycle", "criteria": {"type": "specific_activity", "activity_type": "Cycling", "count": 15},
     "rarity": "rare", "display_order": 12},
    # Streak
    {"name": "Week Warrior", "description": "Be active 7 days in a row", "category": "streak",
     "icon": "calendar", "criteria": {"type": "consecutive_days", "days": 7}, "rarity": "rare",
     "display_order": 15},
    # Social
    {"name": "Popular", "description": "Receive 10 likes on your activities", "category": "social",
     "icon": "hand.thumbsup.fill", "criteria": {"type": "likes_received", "count": 10}, "rarity": "common",
     "display_order": 20},
    {"name": "Community Star", "description": "Receive 50 likes on your activities", "category": "social",
     "icon": "star.leadinghalf.filled", "criteria": {"type": "likes_received", "count": 50}, "rarity": "rare",
     "display_order": 21},
    {"name": "Supportive", "description": "Give 25 likes to other activities", "category": "social",
     "icon": "heart.fill", "criteria": {"type": "likes_given", "count": 25}, "rarity": "common",
     "display_order": 22},
]

# (category, tag, activity type name, confidence) for the ticketmaster source
EVENT_CATEGORY_SEED_DATA: list[tuple[str | None, str | None, str, float]] = [
    ("Sports", None, "Sports", 1.0),
    ("Music", None, "Concert", 1.0),
    ("Arts & Theatre", None, "Arts & Theatre", 1.0),
    ("Family", None, "Family", 0.9),
    ("Miscellaneous", None, "Other", 0.5),
    *[(None, tag, "Sports", 0.8) for tag in (
        "Basketball", "Football", "Baseball", "Soccer", "Hockey", "Tennis",
        "Golf", "Motorsports/Racing", "Mixed Martial Arts", "Wrestling",
    )],
    (None, "Running", "Running", 0.9),
    (None, "Cycling", "Cycling", 0.9),
    *[(None, tag, "Concert", 0.8) for tag in (
        "Rock", "Pop", "Jazz", "Classical", "Hip-Hop/Rap", "Country", "R&B", "Electronic", "Alternative",
    )],
    *[(None, tag, "Arts & Theatre", 0.8) for tag in (
        "Theatre", "Musical", "Comedy", "Dance", "Ballet", "Opera", "Circus & Specialty Acts",
    )],
    *[(None, tag, "Family", 0.7) for tag in ("Children's Theatre", "Children's Music", "Family")],
    *[(None, tag, "Festival", 0.9) for tag in ("Festival", "Fairs & Festivals")],
]


async def seed_activity_types(db: AsyncSession) -> dict[str, int]:
    """Upsert the activity type catalog. Returns name -> id."""
    for type_data in ACTIVITY_TYPE_SEED_DATA:
        stmt = insert_for(db, ActivityType).values(**type_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={"icon": stmt.excluded.icon},
        )
        await db.execute(stmt)
    rows = await db.execute(select(ActivityType.name, ActivityType.id))
    return {name: type_id for name, type_id in rows}


async def seed_milestones(db: AsyncSession) -> int:
    for milestone in MILESTONE_SEED_DATA:
        stmt = insert_for(db, LevelMilestone).values(**milestone)
        stmt = stmt.on_conflict_do_update(
            index_elements=["milestone_level"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
            },
        )
        await db.execute(stmt)
    return len(MILESTONE_SEED_DATA)


def _resolve_criteria(criteria: dict, type_ids: dict[str, int]) -> dict:
    if "activity_type" not in criteria:
        return criteria
    resolved = {k: v for k, v in criteria.items() if k != "activity_type"}
    resolved["activity_type_id"] = type_ids[criteria["activity_type"]]
    return resolved


async def seed_badges(db: AsyncSession, type_ids: dict[str, int]) -> int:
    for badge_data in BADGE_SEED_DATA:
        values = {**badge_data, "criteria": _resolve_criteria(badge_data["criteria"], type_ids)}
        stmt = insert_for(db, Badge).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["name"],
            set_={
                "description": stmt.excluded.description,
                "category": stmt.excluded.category,
                "icon": stmt.excluded.icon,
                "criteria": stmt.excluded.criteria,
                "rarity": stmt.excluded.rarity,
                "display_order": stmt.excluded.display_order,
            },
        )
        await db.execute(stmt)
    return len(BADGE_SEED_DATA)


async def seed_event_category_mappings(db: AsyncSession, type_ids: dict[str, int], source: str = "ticketmaster") -> int:
    """Insert the default mapping table once. Existing rows for the source are left alone."""
    existing = await db.execute(
        select(func.count(EventCategoryMapping.id)).where(EventCategoryMapping.source == source)
    )
    if existing.scalar_one():
        return 0
    db.add_all([
        EventCategoryMapping(
            source=source,
            category=category,
            tag=tag,
            activity_type_id=type_ids[type_name],
            confidence=confidence,
        )
        for category, tag, type_name, confidence in EVENT_CATEGORY_SEED_DATA
    ])
    await db.flush()
    return len(EVENT_CATEGORY_SEED_DATA)


async def seed_reference_data(db: AsyncSession) -> None:
    """Seed every catalog and commit."""
    type_ids = await seed_activity_types(db)
    milestones = await seed_milestones(db)
    badges = await seed_badges(db, type_ids)
    mappings = await seed_event_category_mappings(db, type_ids)
    await db.commit()
    logger.info(
        "Seeded %d activity types, %d milestones, %d badges, %d category mappings",
        len(type_ids), milestones, badges, mappings,
    )
