"""SIM - simulated end users writing to the help chat."""

import asyncio
import random
from typing import Protocol

import httpx

from helpdesk.logging_config import get_logger

logger = get_logger(__name__)


VIRTUAL_USERS = [
    {"user_id": "ff_0142", "user_name": "Engineer Ruiz", "user_email": "ruiz@station7.example"},
    {"user_id": "ff_0377", "user_name": "Captain Okafor", "user_email": "okafor@station2.example"},
    {"user_id": "ff_0518", "user_name": "Lt. Brandt", "user_email": "brandt@station4.example"},
]

SCENARIOS = [
    {
        "subject": "Cannot submit GAR assessment",
        "type": "bug",
        "priority": "high",
        "messages": [
            "The submit button stays disabled after I fill every risk factor.",
            "Tried again on another browser, same thing.",
            "Thanks, that worked!",
        ],
    },
    {
        "subject": "Add hydrant check to equipment inspection",
        "type": "feature",
        "priority": "low",
        "messages": [
            "Could the inspection form include a hydrant section?",
            "Mostly flow test date and cap condition.",
        ],
    },
    {
        "subject": "Where do I find last month's reports?",
        "type": "help",
        "priority": "medium",
        "messages": [
            "I need the activity reports for last month for the chief.",
            "Found the export, but the dates look off by a day.",
            "Got it, timezone setting. Thanks.",
        ],
    },
]


class ISim(Protocol):
    """Generate help-chat traffic."""

    async def start(self) -> None:
        """Start the scenario."""
        ...

    async def stop(self) -> None:
        """Stop the scenario."""
        ...


class Sim:
    """Virtual end users opening help conversations through the HTTP API."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        min_delay: float = 1.0,
        max_delay: float = 3.0,
    ):
        self._api_url = api_url
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._running = False
        self._task: asyncio.Task | None = None
        self._client: httpx.AsyncClient | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scenario."""
        if self._running:
            return

        self._running = True
        self._client = httpx.AsyncClient(base_url=self._api_url, timeout=10.0)
        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop the scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client:
            await self._client.aclose()
            self._client = None

    async def _pause(self) -> None:
        await asyncio.sleep(random.uniform(self._min_delay, self._max_delay))

    async def _run_scenario(self) -> None:
        """Each user opens one conversation, then keeps writing into it."""
        try:
            opened: list[tuple[dict, str, list[str]]] = []
            for user, scenario in zip(VIRTUAL_USERS, SCENARIOS):
                if not self._running:
                    return
                first, *follow_ups = scenario["messages"]
                conversation_id = await self._open_conversation(user, scenario, first)
                if conversation_id:
                    opened.append((user, conversation_id, follow_ups))
                await self._pause()

            rounds = max((len(f) for _, _, f in opened), default=0)
            for i in range(rounds):
                for user, conversation_id, follow_ups in opened:
                    if not self._running:
                        return
                    if i < len(follow_ups):
                        await self._send_message(user, conversation_id, follow_ups[i])
                        await self._pause()

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e, exc_info=True)
        finally:
            self._running = False

    async def _open_conversation(self, user: dict, scenario: dict, text: str) -> str | None:
        if not self._client:
            return None

        try:
            response = await self._client.post(
                "/api/conversations",
                json={
                    **user,
                    "subject": scenario["subject"],
                    "type": scenario["type"],
                    "priority": scenario["priority"],
                    "initial_message": text,
                },
            )
        except httpx.HTTPError as e:
            logger.error("SIM: Failed to open conversation: %s", e)
            return None

        if response.status_code != 201:
            logger.error("SIM: Error opening conversation: %s", response.status_code)
            return None

        conversation_id = response.json()["id"]
        logger.info("SIM: %s opened %s", user["user_id"], conversation_id)
        return conversation_id

    async def _send_message(self, user: dict, conversation_id: str, text: str) -> None:
        if not self._client:
            return

        try:
            response = await self._client.post(
                f"/api/conversations/{conversation_id}/messages",
                json={
                    "sender": "user",
                    "sender_id": user["user_id"],
                    "sender_name": user["user_name"],
                    "sender_email": user["user_email"],
                    "body": text,
                },
            )
        except httpx.HTTPError as e:
            logger.error("SIM: Failed to send message: %s", e)
            return

        if response.status_code == 201:
            logger.info("SIM: %s -> %s", user["user_id"], text)
        else:
            logger.error("SIM: Error sending message: %s", response.status_code)
