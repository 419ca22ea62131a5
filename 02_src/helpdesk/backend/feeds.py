"""Push-feed subscriptions.

A feed delivers the full current snapshot of what it watches: once right
after it is established, then again after every relevant change published
on the EventBus. Snapshots are never deltas.
"""

import uuid
from typing import Awaitable, Callable, Generic, TypeVar

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import ChangeEvent, Topic

logger = get_logger(__name__)

T = TypeVar("T")

SnapshotCallback = Callable[[list[T]], None]
ErrorCallback = Callable[[Exception], None]
SnapshotFetcher = Callable[[], Awaitable[list[T]]]
ChangeFilter = Callable[[ChangeEvent], bool]


class Subscription(Generic[T]):
    """Handle for one live feed. ``cancel()`` is the single disposal method."""

    def __init__(
        self,
        event_bus: IEventBus,
        topic: Topic,
        fetch: SnapshotFetcher,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        matches: ChangeFilter | None = None,
        name: str = "feed",
    ):
        self.id = str(uuid.uuid4())
        self.name = name
        self._event_bus = event_bus
        self._topic = topic
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._matches = matches
        self._active = False
        self._started = False
        self._requested = 0
        self._delivered = 0
        self.error: Exception | None = None

    @property
    def active(self) -> bool:
        return self._active

    async def start(self) -> None:
        """Attach to the bus and push the initial snapshot."""
        if self._started:
            raise RuntimeError(f"Subscription {self.name} already started")
        self._started = True
        self._active = True
        self._event_bus.subscribe(self._topic, self._handle_change)
        logger.debug("Feed %s established", self.name)
        await self._refresh()

    def cancel(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._event_bus.unsubscribe(self._topic, self._handle_change)
        logger.debug("Feed %s torn down", self.name)

    async def _handle_change(self, event: ChangeEvent) -> None:
        if self._matches is not None and not self._matches(event):
            return
        await self._refresh()

    async def _refresh(self) -> None:
        if not self._active:
            return

        self._requested += 1
        sequence = self._requested

        try:
            snapshot = await self._fetch()
        except Exception as e:
            logger.error(
                "Feed %s failed, no further updates: %s",
                self.name,
                e,
                exc_info=True,
                extra={"context": {"subscription_id": self.id}},
            )
            self.error = e
            self.cancel()
            if self._on_error is not None:
                self._on_error(e)
            return

        # Cancelled while fetching, or a newer snapshot already went out
        if not self._active or sequence <= self._delivered:
            return

        self._delivered = sequence
        self._on_snapshot(snapshot)
