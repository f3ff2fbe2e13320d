"""Creation and discovery of Outline server instances.

``create_instance`` returns a ``ServerHandle`` as soon as the VM exists.
Promotion of its address and the project firewall are driven in the
background; the handle's completion signal resolves once both conclude.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from outline_manager.completion import Completion
from outline_manager.config import GcpConfig
from outline_manager.errors import InstanceCreationFailed, OperationCancelled, step_failure
from outline_manager.gcp.protocols import CloudApi
from outline_manager.gcp.types import InstanceBody, InstanceResponse
from outline_manager.model import InstanceLocator, ServerHandle, resource_id
from outline_manager.observability.logger import logger

from .addresses import IpPromoter
from .firewall import FirewallManager
from .poller import OperationPoller

type Clock = Callable[[], datetime]

log = logger.bind(component="instances")


def make_instance_name(now: datetime) -> str:
    """RFC1035-style name with second granularity.

    Two creations started within the same second get the same name.
    """
    return now.strftime("outline-%Y%m%d-%H%M%S")


def utcnow() -> datetime:
    return datetime.now(UTC)


class InstanceProvisioner:
    def __init__(
        self,
        api: CloudApi,
        config: GcpConfig,
        poller: OperationPoller,
        firewall: FirewallManager,
        promoter: IpPromoter,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._api = api
        self._config = config
        self._poller = poller
        self._firewall = firewall
        self._promoter = promoter
        self._clock = clock
        self._background: set[asyncio.Task[None]] = set()

    def build_instance_body(self, name: str, description: str, zone_id: str) -> InstanceBody:
        config = self._config
        return InstanceBody(
            name=name,
            description=description,
            machineType=f"zones/{zone_id}/machineTypes/{config.machine_type}",
            disks=[
                {
                    "boot": True,
                    "initializeParams": {"sourceImage": config.source_image},
                },
            ],
            networkInterfaces=[
                # An empty access config requests an ephemeral external IP.
                {"network": config.network, "accessConfigs": [{}]},
            ],
            labels={config.label_key: "true"},
            tags={"items": [config.firewall_tag]},
            metadata={
                "items": [
                    {"key": "enable-guest-attributes", "value": "TRUE"},
                    {"key": "user-data", "value": "#!/bin/bash -eu\n" + config.install_script},
                ],
            },
        )

    async def create_instance(
        self,
        project_id: str,
        description: str,
        zone_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> ServerHandle:
        """Create a server VM and start its background setup.

        Returns once the creation operation is done.

        Raises:
            InstanceCreationFailed: The creation was rejected or its operation
                ended with an error.
        """
        name = make_instance_name(self._clock())
        body = self.build_instance_body(name, description, zone_id)

        log.info("Creating instance {name} in {pid}/{zone}", name=name, pid=project_id, zone=zone_id)
        with step_failure(InstanceCreationFailed, f"create/{name}"):
            operation = await self._api.create_instance(project_id, zone_id, body)
            if operation.failed:
                raise InstanceCreationFailed(operation.name, operation.error)
            if not operation.target_id:
                raise InstanceCreationFailed(
                    operation.name, {"message": "operation carries no target instance id"},
                )

            done = await self._poller.wait(
                operation,
                lambda op: self._api.get_zone_operation(project_id, zone_id, op),
                cancel=cancel,
            )
        if done.failed:
            raise InstanceCreationFailed(done.name, done.error)

        locator = InstanceLocator(project_id, zone_id, operation.target_id)
        completion = Completion()
        task = asyncio.create_task(
            self._finish_setup(locator, name, completion, cancel),
            name=f"setup-{name}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        return ServerHandle(id=locator.instance_id, locator=locator, name=name, completion=completion)

    async def _finish_setup(
        self,
        locator: InstanceLocator,
        name: str,
        completion: Completion,
        cancel: asyncio.Event | None,
    ) -> None:
        steps = [
            asyncio.create_task(self._promoter.promote_ephemeral_ip(locator, cancel=cancel)),
            asyncio.create_task(self._firewall.ensure_firewall(locator.project_id, cancel=cancel)),
        ]
        first_failure: Exception | None = None
        try:
            for step in asyncio.as_completed(steps):
                try:
                    await step
                except Exception as e:
                    log.warning("Setup step of {name} failed: {err}", name=name, err=e)
                    if first_failure is None:
                        first_failure = e
        except asyncio.CancelledError:
            for step in steps:
                step.cancel()
            completion.set_exception(OperationCancelled(f"setup/{name}"))
            raise

        if first_failure is None:
            log.info("Server {name} is ready", name=name)
            completion.set_result()
            return

        try:
            if self._config.failure_policy == "delete":
                await self._discard_instance(locator, name, first_failure)
        finally:
            completion.set_exception(first_failure)

    async def _discard_instance(
        self, locator: InstanceLocator, name: str, failure: Exception,
    ) -> None:
        log.info("Deleting instance {name} after failed setup", name=name)
        try:
            operation = await self._api.delete_instance(locator)
            done = await self._poller.wait(
                operation,
                lambda op: self._api.get_zone_operation(locator.project_id, locator.zone_id, op),
            )
        except Exception as e:
            log.exception("Failed to delete instance {name}: {err}", name=name, err=e)
            failure.add_note(f"deleting instance {name} also failed: {e}")
            return
        if done.failed:
            failure.add_note(f"deleting instance {name} also failed: {done.error}")

    async def list_instances(self, project_id: str) -> list[ServerHandle]:
        """Return every managed instance of the project across all zones."""
        zones = await self._api.list_zones(project_id)
        responses = await asyncio.gather(*(
            self._api.list_instances(project_id, zone["name"], self._config.label_filter)
            for zone in zones
        ))
        return [
            self._existing_server(project_id, instance)
            for instances in responses
            for instance in instances
        ]

    @staticmethod
    def _existing_server(project_id: str, instance: InstanceResponse) -> ServerHandle:
        locator = InstanceLocator(project_id, resource_id(instance["zone"]), str(instance["id"]))
        return ServerHandle(
            id=locator.instance_id,
            locator=locator,
            name=instance["name"],
            completion=Completion.resolved(),
        )

    async def wait_background(self) -> None:
        """Wait for every background setup started by this provisioner."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
