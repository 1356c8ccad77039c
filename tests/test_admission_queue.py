"""Tests for the admission queue (concurrency ceiling + FIFO overflow)."""

import asyncio

import pytest

from interview_ai.gateway.admission_queue import AdmissionQueue


class TestAdmissionQueue:
    @pytest.mark.asyncio
    async def test_submit_returns_result(self):
        queue = AdmissionQueue(concurrency_limit=2)

        async def op():
            return 42

        assert await queue.submit(op) == 42
        stats = queue.get_stats()
        assert stats.active_requests == 0
        assert stats.queue_length == 0
        assert stats.concurrency_limit == 2

    @pytest.mark.asyncio
    async def test_failure_propagates_and_frees_slot(self):
        queue = AdmissionQueue(concurrency_limit=1)

        async def boom():
            raise RuntimeError("upstream exploded")

        with pytest.raises(RuntimeError, match="upstream exploded"):
            await queue.submit(boom)

        assert queue.active_requests == 0

        async def ok():
            return "still works"

        assert await queue.submit(ok) == "still works"

    @pytest.mark.asyncio
    async def test_ceiling_respected_and_fifo_dispatch(self):
        limit, extra = 3, 4
        queue = AdmissionQueue(concurrency_limit=limit)
        release = asyncio.Event()
        started: list[int] = []
        max_active = 0
        running = 0

        def make_op(i: int):
            async def op():
                nonlocal running, max_active
                running += 1
                max_active = max(max_active, running)
                started.append(i)
                await release.wait()
                running -= 1
                return i

            return op

        tasks = [asyncio.create_task(queue.submit(make_op(i))) for i in range(limit + extra)]
        await asyncio.sleep(0.01)

        stats = queue.get_stats()
        assert stats.active_requests == limit
        assert stats.queue_length == extra
        assert started == [0, 1, 2]

        release.set()
        results = await asyncio.gather(*tasks)

        assert results == list(range(limit + extra))
        assert max_active <= limit
        # Queued portion dispatched in submission order
        assert started[limit:] == [3, 4, 5, 6]
        assert queue.queue_length == 0
        assert queue.active_requests == 0

    @pytest.mark.asyncio
    async def test_queued_failure_rejects_only_its_caller(self):
        queue = AdmissionQueue(concurrency_limit=1)
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "slow"

        async def failing():
            raise ValueError("bad request")

        async def fine():
            return "fine"

        t1 = asyncio.create_task(queue.submit(slow))
        t2 = asyncio.create_task(queue.submit(failing))
        t3 = asyncio.create_task(queue.submit(fine))
        await asyncio.sleep(0.01)
        assert queue.queue_length == 2

        gate.set()
        assert await t1 == "slow"
        with pytest.raises(ValueError):
            await t2
        assert await t3 == "fine"
        assert queue.active_requests == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_skipped(self):
        queue = AdmissionQueue(concurrency_limit=1)
        gate = asyncio.Event()
        calls: list[str] = []

        async def blocker():
            await gate.wait()

        async def never():
            calls.append("never")

        async def later():
            calls.append("later")

        t1 = asyncio.create_task(queue.submit(blocker))
        t2 = asyncio.create_task(queue.submit(never))
        t3 = asyncio.create_task(queue.submit(later))
        await asyncio.sleep(0.01)

        t2.cancel()
        await asyncio.sleep(0)
        gate.set()
        await t1
        await t3

        assert calls == ["later"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending(self):
        queue = AdmissionQueue(concurrency_limit=1)
        gate = asyncio.Event()

        async def blocker():
            await gate.wait()

        t1 = asyncio.create_task(queue.submit(blocker))
        t2 = asyncio.create_task(queue.submit(blocker))
        await asyncio.sleep(0.01)

        await queue.shutdown()
        results = await asyncio.gather(t1, t2, return_exceptions=True)
        assert all(isinstance(r, asyncio.CancelledError) for r in results)
        assert queue.queue_length == 0

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            AdmissionQueue(concurrency_limit=0)
