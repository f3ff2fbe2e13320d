from __future__ import annotations

import asyncio

from outline_manager.errors import IpPromotionFailed, step_failure
from outline_manager.gcp.protocols import CloudApi
from outline_manager.gcp.types import InstanceResponse, StaticIpBody
from outline_manager.model import InstanceLocator
from outline_manager.observability.logger import logger

from .poller import OperationPoller

log = logger.bind(component="addresses")


class IpPromoter:
    """Promotes an instance's ephemeral external address to a static one.

    There is no rollback: if promotion fails the instance keeps running with
    its ephemeral address.
    """

    def __init__(self, api: CloudApi, poller: OperationPoller) -> None:
        self._api = api
        self._poller = poller

    async def promote_ephemeral_ip(
        self, locator: InstanceLocator, *, cancel: asyncio.Event | None = None,
    ) -> str:
        """Reserve the instance's current external IP. Returns the address.

        Raises:
            IpPromotionFailed: The instance has no ephemeral address, or the
                reservation was rejected or ended with an error.
        """
        with step_failure(IpPromotionFailed, f"promote/{locator.instance_id}"):
            instance = await self._api.get_instance(locator)
        ip = ephemeral_ip(instance)
        if not ip:
            raise IpPromotionFailed(
                f"promote/{instance['name']}",
                {"message": f"instance {instance['name']} has no external address"},
            )

        body = StaticIpBody(
            name=instance["name"],
            description=instance.get("description", ""),
            address=ip,
        )
        region = locator.region_id
        log.info(
            "Promoting {ip} of {name} to a static address in {region}",
            ip=ip, name=instance["name"], region=region,
        )
        with step_failure(IpPromotionFailed, f"promote/{instance['name']}"):
            operation = await self._api.create_static_ip(locator.project_id, region, body)
            if operation.failed:
                raise IpPromotionFailed(operation.name, operation.error)

            done = await self._poller.wait(
                operation,
                lambda op: self._api.get_region_operation(locator.project_id, region, op),
                cancel=cancel,
            )
        if done.failed:
            raise IpPromotionFailed(done.name, done.error)
        return ip


def ephemeral_ip(instance: InstanceResponse) -> str | None:
    """Address of the first access config of the first network interface."""
    interfaces = instance.get("networkInterfaces") or []
    if not interfaces:
        return None
    configs = interfaces[0].get("accessConfigs") or []
    if not configs:
        return None
    return configs[0].get("natIP") or None
