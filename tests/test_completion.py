from __future__ import annotations

import asyncio

import pytest

from outline_manager.completion import Completion

pytestmark = [pytest.mark.unit]


class TestCompletion:
    @pytest.mark.asyncio
    async def test_resolved(self):
        completion = Completion.resolved()
        assert completion.done()
        assert completion.exception() is None
        await completion.wait()

    @pytest.mark.asyncio
    async def test_waiters_before_and_after(self):
        completion = Completion()
        early = [asyncio.create_task(completion.wait()) for _ in range(3)]
        await asyncio.sleep(0)
        assert not any(t.done() for t in early)

        completion.set_result()
        await asyncio.gather(*early)
        await completion

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        completion = Completion()
        waiters = [asyncio.create_task(completion.wait()) for _ in range(2)]
        completion.set_exception(ValueError("bad"))

        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, ValueError) for r in results)
        with pytest.raises(ValueError, match="bad"):
            await completion.wait()

    @pytest.mark.asyncio
    async def test_resolves_once(self):
        completion = Completion()
        completion.set_result()

        with pytest.raises(RuntimeError, match="already resolved"):
            completion.set_result()
        with pytest.raises(RuntimeError, match="already resolved"):
            completion.set_exception(ValueError())

    @pytest.mark.asyncio
    async def test_exception_before_resolution(self):
        with pytest.raises(asyncio.InvalidStateError):
            Completion().exception()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_signal(self):
        completion = Completion()
        waiter = asyncio.create_task(completion.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)

        assert not completion.done()
        completion.set_result()
        await completion.wait()

    @pytest.mark.asyncio
    async def test_repr(self):
        completion = Completion()
        assert repr(completion) == "Completion(pending)"
        completion.set_exception(KeyError("x"))
        assert "failed" in repr(completion)
