from __future__ import annotations

import asyncio

from outline_manager.config import GcpConfig
from outline_manager.errors import ApiError, FirewallCreationFailed, OperationTimeout, step_failure
from outline_manager.gcp.protocols import CloudApi
from outline_manager.gcp.types import FirewallBody
from outline_manager.model import Operation
from outline_manager.observability.logger import logger

from .poller import OperationPoller

log = logger.bind(component="firewall")


class FirewallManager:
    """Ensures the ingress rule exposing tagged servers exists in a project."""

    def __init__(self, api: CloudApi, config: GcpConfig, poller: OperationPoller) -> None:
        self._api = api
        self._config = config
        self._poller = poller

    def build_firewall_body(self) -> FirewallBody:
        return FirewallBody(
            name=self._config.firewall_name,
            direction="INGRESS",
            priority=1000,
            targetTags=[self._config.firewall_tag],
            allowed=[{"IPProtocol": "all"}],
            sourceRanges=["0.0.0.0/0"],
        )

    async def ensure_firewall(
        self, project_id: str, *, cancel: asyncio.Event | None = None,
    ) -> bool:
        """Create the firewall rule unless it exists. Returns True if created.

        When another flow is creating the same rule, waits until that rule
        is listed.

        Raises:
            FirewallCreationFailed: The rule could not be created, or a
                concurrently created rule never appeared.
        """
        name = self._config.firewall_name
        with step_failure(FirewallCreationFailed, f"firewall/{name}"):
            if await self._api.list_firewalls(project_id, name):
                log.debug("Firewall rule {name} already exists in {pid}", name=name, pid=project_id)
                return False

            log.info("Creating firewall rule {name} in {pid}", name=name, pid=project_id)
            try:
                operation = await self._api.create_firewall(project_id, self.build_firewall_body())
            except ApiError as e:
                if e.status != 409:
                    raise
                await self._wait_until_listed(project_id, cancel)
                return False

            if operation.failed:
                raise FirewallCreationFailed(operation.name, operation.error)

            done = await self._poller.wait(
                operation,
                lambda op: self._api.get_global_operation(project_id, op),
                cancel=cancel,
            )
        if done.failed:
            raise FirewallCreationFailed(done.name, done.error)

        log.info("Firewall rule {name} ready in {pid}", name=name, pid=project_id)
        return True

    async def _wait_until_listed(self, project_id: str, cancel: asyncio.Event | None) -> None:
        # A 409 only reserves the name; the competing create may still fail.
        name = self._config.firewall_name
        log.debug("Firewall rule {name} is being created concurrently, waiting", name=name)

        async def listed(step: str) -> Operation:
            return Operation(step, done=bool(await self._api.list_firewalls(project_id, name)))

        try:
            await self._poller.wait(Operation(f"firewall/{name}"), listed, cancel=cancel)
        except OperationTimeout as e:
            raise FirewallCreationFailed(
                e.operation, {"message": f"concurrently created rule {name} never appeared"},
            ) from e
