"""Tests for the bounded multi-producer event channel."""

import asyncio

import pytest

from procguard.process.channel import EventChannel


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_recv_without_senders_returns_none(self):
        channel = EventChannel(2)
        assert await channel.recv() is None

    @pytest.mark.asyncio
    async def test_buffered_events_are_delivered_before_end(self):
        channel = EventChannel(4)
        sender = channel.sender()
        await sender.send("a")
        await sender.send("b")
        sender.close()

        assert await channel.recv() == "a"
        assert await channel.recv() == "b"
        assert await channel.recv() is None

    @pytest.mark.asyncio
    async def test_recv_waits_until_last_sender_closes(self):
        channel = EventChannel(2)
        first = channel.sender()
        second = channel.sender()

        receiver = asyncio.create_task(channel.recv())
        first.close()
        await asyncio.sleep(0.05)
        assert not receiver.done()

        second.close()
        assert await asyncio.wait_for(receiver, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_recv_wakes_on_send(self):
        channel = EventChannel(2)
        sender = channel.sender()

        receiver = asyncio.create_task(channel.recv())
        await asyncio.sleep(0.01)
        await sender.send("line")

        assert await asyncio.wait_for(receiver, timeout=1.0) == "line"

    @pytest.mark.asyncio
    async def test_send_blocks_while_full(self):
        channel = EventChannel(1)
        sender = channel.sender()
        await sender.send(1)

        blocked = asyncio.create_task(sender.send(2))
        await asyncio.sleep(0.05)
        assert not blocked.done()

        assert await channel.recv() == 1
        await asyncio.wait_for(blocked, timeout=1.0)
        assert await channel.recv() == 2

    @pytest.mark.asyncio
    async def test_per_sender_order_is_preserved(self):
        channel = EventChannel(2)
        out = channel.sender()
        err = channel.sender()

        async def produce(sender, tag):
            try:
                for i in range(50):
                    await sender.send((tag, i))
            finally:
                sender.close()

        producers = asyncio.gather(produce(out, "out"), produce(err, "err"))
        received = []
        while True:
            event = await channel.recv()
            if event is None:
                break
            received.append(event)
        await producers

        assert [i for tag, i in received if tag == "out"] == list(range(50))
        assert [i for tag, i in received if tag == "err"] == list(range(50))

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self):
        channel = EventChannel(2)
        sender = channel.sender()
        sender.close()

        with pytest.raises(RuntimeError):
            await sender.send("late")

    def test_close_is_idempotent(self):
        channel = EventChannel(2)
        first = channel.sender()
        second = channel.sender()

        first.close()
        first.close()

        assert first.closed
        assert channel.open_senders == 1
        second.close()
        assert channel.open_senders == 0
