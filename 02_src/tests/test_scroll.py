"""Tests for scroll-position preservation."""

from helpdesk.sync import ScrollAction, ScrollGeometry
from helpdesk.sync.scroll import ScrollPhase, ScrollTracker

from conftest import make_message

AT_BOTTOM = ScrollGeometry(scroll_top=600, scroll_height=1000, client_height=400)
SCROLLED_UP = ScrollGeometry(scroll_top=100, scroll_height=1000, client_height=400)


def _messages(*senders: str):
    return [make_message(f"m{i}", f"text {i}", sender_id=s, minutes=i) for i, s in enumerate(senders)]


class TestScrollGeometry:
    """Tests for the near-bottom threshold."""

    def test_distance_from_bottom(self):
        assert AT_BOTTOM.distance_from_bottom == 0
        assert SCROLLED_UP.distance_from_bottom == 500

    def test_threshold_is_exclusive(self):
        tracker = ScrollTracker(near_bottom_px=50)
        assert tracker.is_near_bottom(ScrollGeometry(551, 1000, 400))
        assert not tracker.is_near_bottom(ScrollGeometry(550, 1000, 400))


class TestInitialLoad:
    """Tests for the initial-load phase."""

    def test_first_messages_snap_to_bottom(self):
        tracker = ScrollTracker()
        action = tracker.on_messages(_messages("user_1", "user_1"), viewer_id="admin_1")

        assert action is ScrollAction.SNAP_TO_BOTTOM
        assert tracker.phase is ScrollPhase.FOLLOWING

    def test_empty_list_does_nothing(self):
        tracker = ScrollTracker()
        assert tracker.on_messages([], viewer_id="admin_1") is ScrollAction.NONE
        assert tracker.phase is ScrollPhase.INITIAL_LOAD

    def test_scroll_during_initial_load_keeps_phase(self):
        tracker = ScrollTracker()
        tracker.on_scroll(SCROLLED_UP)
        assert tracker.phase is ScrollPhase.INITIAL_LOAD
        assert tracker.on_messages(_messages("user_1"), "admin_1") is ScrollAction.SNAP_TO_BOTTOM


class TestNewMessages:
    """Tests for reacting to arrivals after the initial load."""

    def _loaded(self) -> ScrollTracker:
        tracker = ScrollTracker()
        tracker.on_messages(_messages("user_1", "admin_1"), viewer_id="admin_1")
        return tracker

    def test_own_message_snaps_even_when_scrolled_up(self):
        """Test that sending always brings the viewer to their message."""
        tracker = self._loaded()
        tracker.on_scroll(SCROLLED_UP)

        action = tracker.on_messages(_messages("user_1", "admin_1", "admin_1"), "admin_1")

        assert action is ScrollAction.SNAP_TO_BOTTOM
        assert tracker.show_new_messages is False

    def test_other_message_at_bottom_snaps(self):
        tracker = self._loaded()
        tracker.on_scroll(AT_BOTTOM)

        action = tracker.on_messages(_messages("user_1", "admin_1", "user_1"), "admin_1")

        assert action is ScrollAction.SNAP_TO_BOTTOM

    def test_other_message_while_reading_history(self):
        """Test that the position is kept and the affordance shown."""
        tracker = self._loaded()
        tracker.on_scroll(SCROLLED_UP)
        assert tracker.phase is ScrollPhase.USER_SCROLLING

        action = tracker.on_messages(_messages("user_1", "admin_1", "user_1"), "admin_1")

        assert action is ScrollAction.SHOW_NEW_MESSAGES
        assert tracker.show_new_messages is True
        assert tracker.phase is ScrollPhase.USER_SCROLLING

    def test_unchanged_count_does_nothing(self):
        """Test that a confirmation replacing an optimistic entry does not scroll."""
        tracker = self._loaded()
        tracker.on_scroll(SCROLLED_UP)

        action = tracker.on_messages(_messages("user_1", "admin_1"), "admin_1")

        assert action is ScrollAction.NONE

    def test_near_bottom_flag_comes_from_scroll_events(self):
        """Test that the pre-append position decides, not the grown container."""
        tracker = self._loaded()
        tracker.on_scroll(AT_BOTTOM)
        # Container grew but no scroll event since: still following
        tracker.on_messages(_messages("user_1", "admin_1", "user_1"), "admin_1")
        action = tracker.on_messages(
            _messages("user_1", "admin_1", "user_1", "user_1"), "admin_1"
        )
        assert action is ScrollAction.SNAP_TO_BOTTOM


class TestJumpAndReset:
    """Tests for jump-to-bottom and reset."""

    def test_jump_to_bottom_clears_indicator(self):
        tracker = ScrollTracker()
        tracker.on_messages(_messages("user_1"), "admin_1")
        tracker.on_scroll(SCROLLED_UP)
        tracker.on_messages(_messages("user_1", "user_1"), "admin_1")

        assert tracker.jump_to_bottom() is ScrollAction.SNAP_TO_BOTTOM
        assert tracker.show_new_messages is False
        assert tracker.phase is ScrollPhase.FOLLOWING

    def test_scrolling_back_down_hides_indicator(self):
        tracker = ScrollTracker()
        tracker.on_messages(_messages("user_1"), "admin_1")
        tracker.on_scroll(SCROLLED_UP)
        assert tracker.show_new_messages is True

        assert tracker.on_scroll(AT_BOTTOM) is True
        assert tracker.show_new_messages is False

    def test_reset(self):
        tracker = ScrollTracker()
        tracker.on_messages(_messages("user_1"), "admin_1")
        tracker.on_scroll(SCROLLED_UP)

        tracker.reset()

        assert tracker.phase is ScrollPhase.INITIAL_LOAD
        assert tracker.was_near_bottom is True
        assert tracker.show_new_messages is False
