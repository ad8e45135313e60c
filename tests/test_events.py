"""Tests for the event emitter."""
import asyncio
import logging

import pytest

from jobclient.utils.events import EventEmitter


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        emitter = EventEmitter()
        seen = []

        async def async_listener(value):
            seen.append(("async", value))

        emitter.on("job", lambda value: seen.append(("sync", value)))
        emitter.on("job", async_listener)
        await emitter.emit("job", 1)

        assert seen == [("sync", 1), ("async", 1)]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, caplog):
        caplog.set_level(logging.ERROR)
        emitter = EventEmitter()
        seen = []

        def broken(value):
            raise ValueError("listener bug")

        emitter.on("job", broken)
        emitter.on("job", seen.append)
        await emitter.emit("job", "x")

        assert seen == ["x"]
        assert "Error in event listener for job" in caplog.text

    @pytest.mark.asyncio
    async def test_off(self):
        emitter = EventEmitter()
        seen = []
        emitter.on("job", seen.append)
        emitter.off("job", seen.append)
        await emitter.emit("job", 1)
        assert seen == []

    @pytest.mark.asyncio
    async def test_listener_can_emit_again(self):
        emitter = EventEmitter()
        seen = []

        async def chain(value):
            seen.append(value)
            if value < 3:
                await emitter.emit("job", value + 1)

        emitter.on("job", chain)
        await asyncio.wait_for(emitter.emit("job", 1), timeout=1)

        assert seen == [1, 2, 3]
