"""Polling of long-running cloud operations.

One helper serves every operation flavor (project create, service enable,
zone/region/global compute operations): the caller supplies the matching
``get`` function and the poller drives it until the operation is done.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_delay,
    stop_never,
    wait_fixed,
)

from outline_manager.config import GcpConfig
from outline_manager.errors import OperationCancelled, OperationTimeout
from outline_manager.model import Operation
from outline_manager.observability.logger import logger

type GetOperation = Callable[[str], Awaitable[Operation]]

log = logger.bind(component="poller")


class _OperationPendingError(Exception):
    """Operation not done yet - retry."""


@dataclass(frozen=True, slots=True)
class OperationPoller:
    """Waits for operations on a fixed interval, with an optional deadline.

    The poller does not interpret ``Operation.error``; callers decide what a
    failed terminal operation means for their flow.
    """

    interval: float = 2.0
    timeout: float | None = None

    @classmethod
    def from_config(cls, config: GcpConfig) -> OperationPoller:
        return cls(interval=config.poll_interval, timeout=config.operation_timeout)

    async def wait(
        self,
        operation: Operation,
        get: GetOperation,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Operation:
        """Return ``operation`` once it is done, polling ``get`` as needed.

        Raises:
            OperationTimeout: The deadline passed before the operation finished.
            OperationCancelled: ``cancel`` was set while waiting.
        """
        if operation.done:
            return operation

        name = operation.name
        current = operation
        retrying = AsyncRetrying(
            stop=stop_after_delay(self.timeout) if self.timeout is not None else stop_never,
            wait=wait_fixed(self.interval),
            retry=retry_if_exception_type(_OperationPendingError),
            sleep=_cancellable_sleep(cancel),
        )

        log.debug("Waiting for operation {name}", name=name)
        try:
            async for attempt in retrying:
                with attempt:
                    if cancel is not None and cancel.is_set():
                        raise OperationCancelled(name)
                    current = await get(name)
                    if not current.done:
                        raise _OperationPendingError(name)
        except RetryError as e:
            raise OperationTimeout(name, self.timeout or 0.0) from e

        log.debug("Operation {name} done (error={err})", name=name, err=current.failed)
        return current


def _cancellable_sleep(cancel: asyncio.Event | None) -> Callable[[float], Awaitable[None]]:
    if cancel is None:
        return asyncio.sleep

    async def sleep(seconds: float) -> None:
        # Wake early on cancellation; the next attempt raises OperationCancelled.
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(cancel.wait(), timeout=seconds)

    return sleep
