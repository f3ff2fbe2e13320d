"""Error taxonomy for provisioning flows.

Every terminal failure of a cloud operation surfaces as one of these
exceptions, either raised from a facade call or carried by a server's
completion signal.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import Any


class OutlineError(Exception):
    """Base class for all outline_manager errors."""


class ApiError(OutlineError):
    """A REST call to the cloud control plane failed."""

    def __init__(
        self, method: str, url: str, status: int, body: str, reason: str | None = None,
    ) -> None:
        self.reason = reason or body[:500]
        super().__init__(f"{method} {url} failed with HTTP {status}: {self.reason}")
        self.method = method
        self.url = url
        self.status = status
        self.body = body


class OperationFailed(OutlineError):
    """A cloud operation, or the request submitting it, ended with an error.

    ``operation`` names the operation, or the step when the submit request
    itself was rejected.
    """

    def __init__(self, operation: str, error: Any) -> None:
        super().__init__(f"Operation {operation} failed: {_describe(error)}")
        self.operation = operation
        self.error = error


class ProjectCreationFailed(OperationFailed):
    pass


class InstanceCreationFailed(OperationFailed):
    pass


class FirewallCreationFailed(OperationFailed):
    pass


class IpPromotionFailed(OperationFailed):
    pass


class ServiceEnablementFailed(OperationFailed):
    pass


class BillingLinkFailed(OperationFailed):
    pass


class OperationTimeout(OutlineError, TimeoutError):
    """A poll loop exceeded its deadline before the operation finished."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"Operation {operation} did not finish within {timeout:.1f}s")
        self.operation = operation
        self.timeout = timeout


class OperationCancelled(OutlineError):
    """A poll loop observed its cancellation token."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Wait for operation {operation} was cancelled")
        self.operation = operation


@contextlib.contextmanager
def step_failure(error: type[OperationFailed], step: str) -> Iterator[None]:
    """Re-raise an ``ApiError`` from a provisioning step as that step's ``error``.

    The HTTP status and reason become the error payload; the ``ApiError``
    stays reachable as ``__cause__``.
    """
    try:
        yield
    except ApiError as e:
        raise error(step, {"code": e.status, "message": e.reason}) from e


def _describe(error: Any) -> str:
    """Render provider error payloads of both operation flavors."""
    match error:
        case {"errors": [*items]} if items:
            return "; ".join(
                str(item.get("message") or item.get("code")) if isinstance(item, dict) else str(item)
                for item in items
            )
        case {"message": str(message)}:
            return message
        case _:
            return str(error)
