"""Tests for the deadline guard."""

import asyncio

import pytest

from procguard.core.events import Terminated
from procguard.process.channel import EventChannel
from procguard.process.guard import TimeoutGuard
from tests.unit.process_fixtures import FakeSignalBackend


class TestTimeoutGuard:
    @pytest.mark.asyncio
    async def test_expiry_announces_then_kills(self):
        backend = FakeSignalBackend({200: [201]})
        channel = EventChannel(2)
        guard = TimeoutGuard(200, 0.05, channel.sender(), backend=backend)
        guard.start()

        event = await asyncio.wait_for(channel.recv(), timeout=1.0)
        assert isinstance(event, Terminated)
        assert await channel.recv() is None

        await guard.wait()
        assert guard.fired
        assert backend.signalled("kill") == {200, 201}

    @pytest.mark.asyncio
    async def test_cancel_before_expiry_is_silent(self):
        backend = FakeSignalBackend({200: [201]})
        channel = EventChannel(2)
        guard = TimeoutGuard(200, 10.0, channel.sender(), backend=backend)
        guard.start()
        await asyncio.sleep(0.01)

        guard.cancel()
        await guard.wait()

        assert not guard.fired
        assert await asyncio.wait_for(channel.recv(), timeout=1.0) is None
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_grace_period_is_used_for_the_kill(self):
        backend = FakeSignalBackend({200: []})
        channel = EventChannel(2)
        guard = TimeoutGuard(200, 0.01, channel.sender(), grace_period=1.0, backend=backend, poll_interval=0.01)
        guard.start()

        await channel.recv()
        await guard.wait()

        assert backend.signalled("term") == {200}
        assert backend.signalled("kill") == set()

    @pytest.mark.asyncio
    async def test_wait_without_start_returns(self):
        channel = EventChannel(2)
        guard = TimeoutGuard(200, 1.0, channel.sender())

        await guard.wait()

        assert guard.task is None
