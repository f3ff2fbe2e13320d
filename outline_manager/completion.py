"""One-shot, multi-waiter completion signal.

A ``Completion`` is resolved exactly once, with success or with an
exception, and any number of tasks may await it before or after that.
"""

from __future__ import annotations

import asyncio


class Completion:
    __slots__ = ("_future",)

    def __init__(self) -> None:
        self._future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        # Waiters are optional; a failure nobody awaits must not be reported
        # as "exception was never retrieved".
        self._future.add_done_callback(_mark_retrieved)

    @classmethod
    def resolved(cls) -> Completion:
        completion = cls()
        completion.set_result()
        return completion

    def set_result(self) -> None:
        if self._future.done():
            raise RuntimeError("Completion already resolved")
        self._future.set_result(None)

    def set_exception(self, exc: BaseException) -> None:
        if self._future.done():
            raise RuntimeError("Completion already resolved")
        self._future.set_exception(exc)

    def done(self) -> bool:
        return self._future.done()

    def exception(self) -> BaseException | None:
        """Return the failure, None on success. Raises if not yet resolved."""
        if not self._future.done():
            raise asyncio.InvalidStateError("Completion not resolved yet")
        return self._future.exception()

    async def wait(self) -> None:
        """Wait until resolved; re-raise the failure if there was one."""
        await asyncio.shield(self._future)

    def __await__(self):
        return self.wait().__await__()

    def __repr__(self) -> str:
        if not self._future.done():
            return "Completion(pending)"
        if exc := self._future.exception():
            return f"Completion(failed={exc!r})"
        return "Completion(ok)"


def _mark_retrieved(future: asyncio.Future[None]) -> None:
    if not future.cancelled():
        future.exception()
