"""Initial schema: users, activity ledger, follow graph, badges, event cache, community events.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            username VARCHAR(50) NOT NULL,
            email VARCHAR(320),
            profile_picture_url TEXT,
            is_private BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT users_username_key UNIQUE (username),
            CONSTRAINT users_email_key UNIQUE (email),
            CONSTRAINT users_username_length_check CHECK (length(username) >= 3)
        )
    """)

    # --- Activity ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS activity_types (
            id SERIAL PRIMARY KEY,
            name VARCHAR(50) NOT NULL,
            icon VARCHAR(64) NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT activity_types_name_key UNIQUE (name)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            activity_type_id INTEGER NOT NULL REFERENCES activity_types(id) ON DELETE RESTRICT,
            timestamp TIMESTAMPTZ NOT NULL,
            notes TEXT,
            location_latitude DOUBLE PRECISION,
            location_longitude DOUBLE PRECISION,
            location_name VARCHAR(255),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT activities_location_valid_check CHECK (
                (location_latitude IS NULL AND location_longitude IS NULL) OR
                (location_latitude BETWEEN -90 AND 90 AND location_longitude BETWEEN -180 AND 180)
            )
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_activities_user_id ON activities(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_activities_activity_type_id ON activities(activity_type_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_activities_timestamp ON activities(timestamp)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_user_timestamp
        ON activities(user_id, timestamp DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS activity_likes (
            id SERIAL PRIMARY KEY,
            activity_id UUID NOT NULL REFERENCES activities(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT activity_likes_activity_id_user_id_key UNIQUE (activity_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_activity_likes_activity_id ON activity_likes(activity_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_activity_likes_user_id ON activity_likes(user_id)")

    # --- Social graph ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_follows (
            id SERIAL PRIMARY KEY,
            follower_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            following_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_follows_follower_id_following_id_key UNIQUE (follower_id, following_id),
            CONSTRAINT user_follows_no_self_follow_check CHECK (follower_id <> following_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_follows_follower_id ON user_follows(follower_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_follows_following_id ON user_follows(following_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS follow_requests (
            id SERIAL PRIMARY KEY,
            requester_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            requested_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT follow_requests_requester_id_requested_id_key UNIQUE (requester_id, requested_id),
            CONSTRAINT follow_requests_no_self_request_check CHECK (requester_id <> requested_id),
            CONSTRAINT follow_requests_status_valid_check CHECK (status IN ('pending', 'accepted', 'rejected'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_follow_requests_requester_id ON follow_requests(requester_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_follow_requests_requested_id ON follow_requests(requested_id)")

    # --- Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(32) NOT NULL,
            icon VARCHAR(64) NOT NULL,
            criteria JSONB NOT NULL,
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            display_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT badges_name_key UNIQUE (name),
            CONSTRAINT badges_category_valid_check CHECK (
                category IN ('activity_count', 'activity_type', 'streak', 'distance', 'social', 'special')
            ),
            CONSTRAINT badges_rarity_valid_check CHECK (rarity IN ('common', 'rare', 'epic', 'legendary'))
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ DEFAULT NOW(),
            progress JSONB,
            CONSTRAINT user_badges_user_id_badge_id_key UNIQUE (user_id, badge_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_badges_user_id ON user_badges(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_badges_badge_id ON user_badges(badge_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS level_milestones (
            id SERIAL PRIMARY KEY,
            milestone_level INTEGER NOT NULL,
            name VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL,
            CONSTRAINT level_milestones_milestone_level_key UNIQUE (milestone_level),
            CONSTRAINT level_milestones_level_positive_check CHECK (milestone_level > 0)
        )
    """)

    # --- External event cache ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS external_events (
            id UUID PRIMARY KEY,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128) NOT NULL,
            content_hash VARCHAR(64) NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            event_url TEXT,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ,
            timezone VARCHAR(64),
            venue_name TEXT,
            venue_address TEXT,
            city VARCHAR(128),
            state VARCHAR(64),
            country VARCHAR(64),
            postal_code VARCHAR(16),
            latitude DOUBLE PRECISION,
            longitude DOUBLE PRECISION,
            source_category VARCHAR(128),
            source_tags JSONB NOT NULL DEFAULT '[]',
            genre VARCHAR(128),
            activity_type_id INTEGER REFERENCES activity_types(id) ON DELETE SET NULL,
            price_min NUMERIC(10, 2),
            price_max NUMERIC(10, 2),
            currency VARCHAR(8),
            is_free BOOLEAN NOT NULL DEFAULT false,
            image_url TEXT,
            thumbnail_url TEXT,
            retrieved_at TIMESTAMPTZ NOT NULL,
            search_location_lat DOUBLE PRECISION,
            search_location_long DOUBLE PRECISION,
            search_radius_miles INTEGER,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT external_events_content_hash_key UNIQUE (content_hash)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_external_events_source_id ON external_events(source_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_external_events_start_date ON external_events(start_date)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_external_events_activity_type_id ON external_events(activity_type_id)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_external_events_location
        ON external_events(latitude, longitude)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS event_category_mappings (
            id SERIAL PRIMARY KEY,
            source VARCHAR(32) NOT NULL,
            category VARCHAR(128),
            tag VARCHAR(128),
            activity_type_id INTEGER NOT NULL REFERENCES activity_types(id) ON DELETE CASCADE,
            confidence DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            CONSTRAINT event_category_mappings_has_key_check CHECK (category IS NOT NULL OR tag IS NOT NULL),
            CONSTRAINT event_category_mappings_confidence_range_check CHECK (confidence >= 0 AND confidence <= 1)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_event_category_mappings_source
        ON event_category_mappings(source)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS api_call_log (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            source VARCHAR(32) NOT NULL,
            search_latitude DOUBLE PRECISION NOT NULL,
            search_longitude DOUBLE PRECISION NOT NULL,
            search_location_name TEXT,
            search_radius_miles INTEGER NOT NULL,
            called_at TIMESTAMPTZ NOT NULL,
            events_retrieved INTEGER NOT NULL DEFAULT 0,
            success BOOLEAN NOT NULL DEFAULT true,
            cached BOOLEAN NOT NULL DEFAULT false,
            error_message TEXT
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_api_call_log_user_id ON api_call_log(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_api_call_log_called_at ON api_call_log(called_at)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_api_call_log_user_source_success
        ON api_call_log(user_id, source, called_at DESC) WHERE success
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS event_attendance (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            event_id UUID NOT NULL REFERENCES external_events(id) ON DELETE CASCADE,
            attended_at TIMESTAMPTZ DEFAULT NOW(),
            notes TEXT,
            rating INTEGER,
            CONSTRAINT event_attendance_user_id_event_id_key UNIQUE (user_id, event_id),
            CONSTRAINT event_attendance_rating_range_check CHECK (rating IS NULL OR (rating >= 1 AND rating <= 5))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_event_attendance_user_id ON event_attendance(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_event_attendance_event_id ON event_attendance(event_id)")

    # --- Community events ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_events (
            id UUID PRIMARY KEY,
            creator_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            visibility VARCHAR(16) NOT NULL DEFAULT 'public',
            name VARCHAR(200) NOT NULL,
            description TEXT,
            event_url TEXT,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ,
            timezone VARCHAR(64),
            venue_name TEXT,
            venue_address TEXT,
            city VARCHAR(128),
            country VARCHAR(64),
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            activity_type_id INTEGER REFERENCES activity_types(id) ON DELETE SET NULL,
            max_attendees INTEGER,
            requirements TEXT,
            price NUMERIC(10, 2),
            currency VARCHAR(8),
            is_free BOOLEAN NOT NULL DEFAULT true,
            is_cancelled BOOLEAN NOT NULL DEFAULT false,
            cancelled_at TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_events_visibility_valid_check CHECK (visibility IN ('public', 'private')),
            CONSTRAINT user_events_capacity_positive_check CHECK (max_attendees IS NULL OR max_attendees > 0)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_events_creator_id ON user_events(creator_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_events_start_date ON user_events(start_date)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_events_public_upcoming
        ON user_events(start_date) WHERE visibility = 'public' AND NOT is_cancelled
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_event_joins (
            id SERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            event_id UUID NOT NULL REFERENCES user_events(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'going',
            joined_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT user_event_joins_user_id_event_id_key UNIQUE (user_id, event_id),
            CONSTRAINT user_event_joins_status_valid_check CHECK (status IN ('going', 'maybe', 'not_going'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_event_joins_user_id ON user_event_joins(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_event_joins_event_id ON user_event_joins(event_id)")


def downgrade() -> None:
    for table in (
        "user_event_joins",
        "user_events",
        "event_attendance",
        "api_call_log",
        "event_category_mappings",
        "external_events",
        "level_milestones",
        "user_badges",
        "badges",
        "follow_requests",
        "user_follows",
        "activity_likes",
        "activities",
        "activity_types",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
