"""Read-time relevance scoring for recommended events."""

from __future__ import annotations

from gtg.config import Settings, get_settings

MAX_SCORE = 100


def relevance_score(user_type_count: int, is_free: bool, settings: Settings | None = None) -> int:
    """Base score, plus points per past activity of the event's type (capped), plus a free bonus."""
    settings = settings or get_settings()
    history = min(
        settings.relevance_history_cap,
        max(user_type_count, 0) * settings.relevance_points_per_activity,
    )
    score = settings.relevance_base_score + history
    if is_free:
        score += settings.relevance_free_bonus
    return min(MAX_SCORE, score)
