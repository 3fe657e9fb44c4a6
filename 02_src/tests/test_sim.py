"""Tests for Sim."""

import json
from unittest.mock import AsyncMock, Mock

import httpx

from sim import Sim
from sim.sim import SCRIPTS


class TestSim:
    """Tests for the scripted scenario."""

    async def test_posts_scripted_messages(self):
        """Test that every scripted line is posted to the inbound webhook."""
        posted = []

        def handler(request: httpx.Request) -> httpx.Response:
            posted.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={})

        tracker = Mock()
        tracker.track = AsyncMock()
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        sim = Sim("http://inbox.test", tracker=tracker, min_delay=0, max_delay=0, client=client)

        await sim.start()
        await sim.wait()

        total = sum(len(s) for s in SCRIPTS)
        assert sim.sent_count == total
        assert len(posted) == total
        assert {path for path, _ in posted} == {"/api/webhooks/inbound"}
        assert posted[0][1]["platform"] == "whatsapp"
        assert posted[0][1]["text_content"] == SCRIPTS[0][0]
        assert sim.running is False

        event_types = [c.args[0] for c in tracker.track.call_args_list]
        assert event_types == ["sim_started", "sim_completed"]
        await client.aclose()

    async def test_error_responses_not_counted(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(400, json={}))
        )
        sim = Sim("http://inbox.test", min_delay=0, max_delay=0, client=client)

        await sim.start()
        await sim.wait()

        assert sim.sent_count == 0
        await client.aclose()

    async def test_stop_before_start(self):
        sim = Sim()
        await sim.stop()
        assert sim.running is False
