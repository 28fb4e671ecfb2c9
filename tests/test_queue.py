from __future__ import annotations

import asyncio

import pytest

from cce_operator.controller.queue import WorkQueue

pytestmark = [pytest.mark.unit]


# ─── Ordering and dedupe ─────────────────────────────────────────────


class TestWorkQueue:
    @pytest.mark.asyncio
    async def test_fifo(self):
        queue = WorkQueue()
        for key in ("ns/a", "ns/b", "ns/c"):
            queue.enqueue(key)
        assert [await queue.get() for _ in range(3)] == ["ns/a", "ns/b", "ns/c"]

    @pytest.mark.asyncio
    async def test_waiting_key_is_deduplicated(self):
        queue = WorkQueue()
        queue.enqueue("ns/a")
        queue.enqueue("ns/a")
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_key_in_flight_is_not_handed_out_again(self):
        queue = WorkQueue()
        queue.enqueue("ns/a")
        assert await queue.get() == "ns/a"

        queue.enqueue("ns/a")
        assert len(queue) == 0
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(queue.get(), timeout=0.05)

        queue.done("ns/a")
        assert await asyncio.wait_for(queue.get(), timeout=1) == "ns/a"

    @pytest.mark.asyncio
    async def test_done_without_changes_does_not_requeue(self):
        queue = WorkQueue()
        queue.enqueue("ns/a")
        key = await queue.get()
        queue.done(key)
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_blocked_getter_wakes_on_enqueue(self):
        queue = WorkQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0)
        queue.enqueue("ns/a")
        assert await asyncio.wait_for(getter, timeout=1) == "ns/a"


# ─── Delays ──────────────────────────────────────────────────────────


class TestDelays:
    @pytest.mark.asyncio
    async def test_enqueue_after(self):
        queue = WorkQueue()
        queue.enqueue_after("ns/a", 0.01)
        assert len(queue) == 0
        assert await asyncio.wait_for(queue.get(), timeout=1) == "ns/a"

    @pytest.mark.asyncio
    async def test_zero_delay_is_immediate(self):
        queue = WorkQueue()
        queue.enqueue_after("ns/a", 0)
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_caps(self):
        queue = WorkQueue(base_delay=1.0, max_delay=5.0)
        delays = [queue.enqueue_rate_limited("ns/a") for _ in range(5)]
        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]
        assert queue.failures("ns/a") == 5
        queue.shutdown()

    @pytest.mark.asyncio
    async def test_forget_resets_backoff(self):
        queue = WorkQueue(base_delay=1.0)
        queue.enqueue_rate_limited("ns/a")
        queue.enqueue_rate_limited("ns/a")
        queue.forget("ns/a")
        assert queue.failures("ns/a") == 0
        assert queue.enqueue_rate_limited("ns/a") == 1.0
        queue.shutdown()

    @pytest.mark.asyncio
    async def test_backoff_is_per_key(self):
        queue = WorkQueue(base_delay=1.0)
        queue.enqueue_rate_limited("ns/a")
        queue.enqueue_rate_limited("ns/a")
        assert queue.enqueue_rate_limited("ns/b") == 1.0
        queue.shutdown()


# ─── Shutdown ────────────────────────────────────────────────────────


class TestShutdown:
    @pytest.mark.asyncio
    async def test_wakes_getters(self):
        queue = WorkQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0)
        queue.shutdown()
        assert await asyncio.wait_for(getter, timeout=1) is None
        assert queue.shutting_down

    @pytest.mark.asyncio
    async def test_cancels_timers_and_ignores_new_keys(self):
        queue = WorkQueue()
        queue.enqueue_after("ns/a", 0.01)
        queue.shutdown()
        queue.enqueue("ns/b")
        await asyncio.sleep(0.03)
        assert len(queue) == 0
