"""SIM implementation - scripted inbound traffic for manual testing."""

import asyncio
import random
import uuid
from datetime import datetime, timezone
from typing import Protocol

import httpx

from inbox.logging_config import get_logger
from inbox.tracker import ITracker

logger = get_logger(__name__)

# Virtual customers, one conversation each
VIRTUAL_CUSTOMERS = [
    {"platform": "whatsapp", "participant_id": "+15550100001", "name": "Alice Moreno"},
    {"platform": "instagram", "participant_id": "ig_20417", "name": "Bob Lee", "username": "bob.lee"},
    {"platform": "telegram", "participant_id": "tg_88213", "name": "Charlie Day"},
]

SCRIPTS = [
    ["Hi! Is the blue jacket still in stock?", "Do you ship to Lisbon?", "Great, thanks!"],
    ["Hello, my order hasn't arrived yet", "Order number is 4417", "Ok, I'll wait"],
    ["Good afternoon", "Can I change my delivery address?", "Perfect, thank you"],
]


class ISim(Protocol):
    """Generate inbound traffic against a running API."""

    async def start(self) -> None:
        """Start the scripted scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


class Sim:
    """Posts scripted customer messages to the inbound webhook."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        tracker: ITracker | None = None,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._tracker = tracker
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._running = False
        self._task: asyncio.Task | None = None
        self._client = client
        self._owns_client = client is None
        self.sent_count = 0

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM trace events."""
        self._tracker = tracker

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scripted scenario in the background."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient()

        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def wait(self) -> None:
        """Wait for the scenario to finish."""
        if self._task:
            await self._task

    async def _run_scenario(self) -> None:
        try:
            if self._tracker:
                await self._tracker.track(
                    "sim_started",
                    "sim",
                    {
                        "scenario": "scripted",
                        "customer_count": len(VIRTUAL_CUSTOMERS),
                        "message_count": sum(len(s) for s in SCRIPTS),
                    },
                )

            rounds = max(len(s) for s in SCRIPTS)
            for i in range(rounds):
                if not self._running:
                    break

                for customer, script in zip(VIRTUAL_CUSTOMERS, SCRIPTS):
                    if not self._running:
                        break
                    if i < len(script):
                        await self._send_message(customer, script[i])
                        await asyncio.sleep(random.uniform(self._min_delay, self._max_delay))

            if self._tracker:
                await self._tracker.track(
                    "sim_completed", "sim", {"sent_count": self.sent_count}
                )

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM: Scenario failed: %s", e)
        finally:
            self._running = False

    async def _send_message(self, customer: dict, text: str) -> None:
        payload = {
            "platform": customer["platform"],
            "platform_conversation_id": f"{customer['platform']}:{customer['participant_id']}",
            "participant_id": customer["participant_id"],
            "participant_name": customer.get("name"),
            "participant_username": customer.get("username"),
            "platform_message_id": f"sim-{uuid.uuid4().hex[:12]}",
            "sent_at": datetime.now(timezone.utc).isoformat(),
            "text_content": text,
        }

        try:
            response = await self._client.post(
                f"{self._api_url}/api/webhooks/inbound",
                json=payload,
                timeout=10.0,
            )
            if response.status_code == 200:
                self.sent_count += 1
                logger.info("SIM: %s -> %s", customer["name"], text)
            else:
                logger.error(
                    "SIM: Error sending message: %s",
                    response.status_code,
                )

        except httpx.HTTPError as e:
            logger.error("SIM: Failed to send message: %s", e)
