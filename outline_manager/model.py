"""Value types shared by the provisioning flows and the account facade."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from outline_manager.completion import Completion

type ZoneMap = dict[str, list[str]]
"""Region id -> ids of the usable zones in that region."""


@dataclass(frozen=True, slots=True)
class Operation:
    """Provider handle for an asynchronous action.

    ``done`` is the terminal flag. ``error`` may be set on a done operation,
    which is a logical failure distinct from a failure to poll.
    """

    name: str
    done: bool = False
    error: Any = None
    target_id: str | None = None

    @property
    def failed(self) -> bool:
        return bool(self.error)


@dataclass(frozen=True, slots=True)
class InstanceLocator:
    project_id: str
    zone_id: str
    instance_id: str

    @property
    def region_id(self) -> str:
        return zone_to_region(self.zone_id)


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class BillingAccount:
    id: str
    name: str
    open: bool = True


@dataclass(frozen=True, slots=True)
class ServerHandle:
    """A server returned to callers, possibly still being provisioned.

    Await ``completion`` for full readiness: firewall in place and address
    promoted to static.
    """

    id: str
    locator: InstanceLocator
    name: str
    completion: Completion = field(repr=False, compare=False)

    async def wait_ready(self) -> None:
        await self.completion.wait()


def zone_to_region(zone: str) -> str:
    """Extract region from zone (e.g., 'us-central1-a' -> 'us-central1')."""
    return zone.rsplit("-", 1)[0]


def resource_id(url_or_name: str) -> str:
    """Last path segment of a resource URL or name ('billingAccounts/X' -> 'X')."""
    return url_or_name.rsplit("/", 1)[-1]
