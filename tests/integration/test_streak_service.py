"""Streak computation against the activity ledger, with a pinned 'today'."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from gtg.gamification.streak_service import get_streak

TODAY = date(2026, 3, 10)


def _at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 3, day, hour, tzinfo=timezone.utc)


class TestStreak:
    @pytest.mark.asyncio
    async def test_no_activity(self, db_session, make_user):
        user = await make_user()
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 0

    @pytest.mark.asyncio
    async def test_run_ending_today(self, db_session, make_user, add_activities):
        user = await make_user()
        await add_activities(user, "Hiking", [_at(8), _at(9), _at(10)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 3

    @pytest.mark.asyncio
    async def test_run_ending_yesterday_is_live(self, db_session, make_user, add_activities):
        """Nothing logged yet today: the run through yesterday still counts in full."""
        user = await make_user()
        await add_activities(user, "Hiking", [_at(7), _at(8), _at(9)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 3

    @pytest.mark.asyncio
    async def test_run_ending_two_days_ago_is_broken(self, db_session, make_user, add_activities):
        user = await make_user()
        await add_activities(user, "Hiking", [_at(day) for day in range(1, 9)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 0

    @pytest.mark.asyncio
    async def test_gap_breaks_streak(self, db_session, make_user, add_activities):
        user = await make_user()
        await add_activities(user, "Hiking", [_at(5), _at(6), _at(8)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 0

    @pytest.mark.asyncio
    async def test_only_latest_run_counts(self, db_session, make_user, add_activities):
        user = await make_user()
        await add_activities(user, "Hiking", [_at(1), _at(2), _at(3), _at(9), _at(10)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 2

    @pytest.mark.asyncio
    async def test_multiple_activities_same_day_count_once(self, db_session, make_user, add_activities):
        user = await make_user()
        await add_activities(user, "Hiking", [_at(10, 6), _at(10, 9), _at(10, 18)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 1

    @pytest.mark.asyncio
    async def test_day_boundary_follows_timezone(self, db_session, make_user, add_activities):
        """02:00 UTC on Mar 10 is still Mar 9 in Los Angeles."""
        user = await make_user()
        await add_activities(user, "Hiking", [_at(9, 2), _at(10, 2)])
        assert await get_streak(db_session, user.id, today=TODAY, tz_name="UTC") == 2
        la = await get_streak(db_session, user.id, today=date(2026, 3, 9), tz_name="America/Los_Angeles")
        assert la == 2
