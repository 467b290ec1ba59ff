"""Follow state machine transition tests (pure logic)."""

import pytest

from gtg.social.follow_service import VALID_TRANSITIONS, validate_transition


class TestFollowTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("none", "requested"),
            ("none", "following"),
            ("requested", "following"),
            ("requested", "none"),
            ("following", "none"),
        ],
    )
    def test_valid(self, current, target):
        validate_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            ("following", "requested"),
            ("following", "following"),
            ("none", "none"),
            ("requested", "requested"),
            ("blocked", "none"),
        ],
    )
    def test_invalid(self, current, target):
        with pytest.raises(ValueError, match="Invalid transition"):
            validate_transition(current, target)

    def test_every_state_can_reach_none(self):
        """No state is a dead end: every non-initial state can return to none."""
        assert all("none" in targets for state, targets in VALID_TRANSITIONS.items() if state != "none")
