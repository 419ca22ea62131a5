"""Scroll-position preservation for the message list."""

from dataclasses import dataclass
from enum import Enum

from ..models import ChatMessage


class ScrollPhase(str, Enum):
    INITIAL_LOAD = "initial_load"
    FOLLOWING = "following"  # at (or near) the bottom
    USER_SCROLLING = "user_scrolling"  # reading history


class ScrollAction(str, Enum):
    NONE = "none"
    SNAP_TO_BOTTOM = "snap_to_bottom"
    SHOW_NEW_MESSAGES = "show_new_messages"


@dataclass(frozen=True)
class ScrollGeometry:
    """Scroll metrics of the message container, in pixels."""

    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def distance_from_bottom(self) -> float:
        return self.scroll_height - self.scroll_top - self.client_height


class ScrollTracker:
    """
    Decides what the message list should do when its contents change.

    The near-bottom flag is only updated from scroll events and from our own
    snaps, never by measuring after an append: by then the container has
    already grown and every viewer would look "scrolled up".
    """

    def __init__(self, near_bottom_px: float = 50.0):
        self._near_bottom_px = near_bottom_px
        self.reset()

    def reset(self) -> None:
        """Start over, e.g. after switching conversations."""
        self.phase = ScrollPhase.INITIAL_LOAD
        self.was_near_bottom = True
        self.show_new_messages = False
        self._previous_count = 0

    def is_near_bottom(self, geometry: ScrollGeometry) -> bool:
        return geometry.distance_from_bottom < self._near_bottom_px

    def on_scroll(self, geometry: ScrollGeometry) -> bool:
        """Record where the viewer is. Returns the near-bottom flag."""
        at_bottom = self.is_near_bottom(geometry)
        self.was_near_bottom = at_bottom
        if self.phase is not ScrollPhase.INITIAL_LOAD:
            self.phase = ScrollPhase.FOLLOWING if at_bottom else ScrollPhase.USER_SCROLLING
        # The jump-to-newest affordance stays up while scrolled away from the end
        self.show_new_messages = not at_bottom and self._previous_count > 0
        return at_bottom

    def on_messages(self, messages: list[ChatMessage], viewer_id: str) -> ScrollAction:
        """Decide how to react to the message list after it changed."""
        count = len(messages)
        if count == 0:
            return ScrollAction.NONE

        grew = count > self._previous_count
        self._previous_count = count

        if self.phase is ScrollPhase.INITIAL_LOAD:
            return self._snap()

        if not grew:
            return ScrollAction.NONE

        if messages[-1].sender_id == viewer_id:
            return self._snap()

        if self.was_near_bottom:
            return self._snap()

        self.show_new_messages = True
        return ScrollAction.SHOW_NEW_MESSAGES

    def jump_to_bottom(self) -> ScrollAction:
        """The viewer asked to go to the newest message."""
        return self._snap()

    def _snap(self) -> ScrollAction:
        self.phase = ScrollPhase.FOLLOWING
        self.was_near_bottom = True
        self.show_new_messages = False
        return ScrollAction.SNAP_TO_BOTTOM
