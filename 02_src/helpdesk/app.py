"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .backend import HelpChatBackend
from .config import SyncSettings, resolve_db_path
from .event_bus import EventBus
from .logging_config import get_logger
from .models import Viewer
from .storage import IStorage, Storage
from .sync import HelpChatSession, IChatView
from .tracker import Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Wipe all conversations, messages and audit events."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(self, db_path: str | None = None, settings: SyncSettings | None = None):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._settings = settings

        # Components (initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._backend: HelpChatBackend | None = None
        self._sessions: list[HelpChatSession] = []

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus (no dependencies)
        self._event_bus = EventBus()

        # 3. Tracker (EventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. Backend (Storage + EventBus + Tracker)
        self._backend = HelpChatBackend(self._storage, self._event_bus, self._tracker)

        if self._settings is None:
            self._settings = SyncSettings.from_env()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for session in self._sessions:
            await session.close()
        self._sessions.clear()
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Wipe all conversations, messages and audit events."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    async def open_session(
        self, viewer: Viewer, view: IChatView | None = None
    ) -> HelpChatSession:
        """Open a live help-chat session; closed again by stop()."""
        session = HelpChatSession(self.backend, viewer, view=view, settings=self._settings)
        await session.open()
        self._sessions = [s for s in self._sessions if not s.closed]
        self._sessions.append(session)
        return session

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def backend(self) -> HelpChatBackend:
        """Get backend instance."""
        if not self._backend:
            raise RuntimeError("Application not started")
        return self._backend

    @property
    def event_bus(self) -> EventBus:
        """Get event bus instance."""
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus
