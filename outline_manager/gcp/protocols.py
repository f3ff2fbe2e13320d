from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from outline_manager.model import InstanceLocator, Operation

from .types import (
    BillingAccountResponse,
    BillingInfoResponse,
    FirewallBody,
    FirewallResponse,
    InstanceBody,
    InstanceResponse,
    ProjectBody,
    ProjectResponse,
    ServiceResponse,
    StaticIpBody,
    UserInfoResponse,
    ZoneResponse,
)


@runtime_checkable
class CloudApi(Protocol):
    """The cloud control plane as seen by the provisioning flows.

    Every create/update call that the provider runs asynchronously returns
    an ``Operation``; callers poll it with the matching ``get_*_operation``
    method. List calls return every item across pages.
    """

    async def get_user_info(self) -> UserInfoResponse: ...

    # ─── Compute Engine ──────────────────────────────────────────────

    async def list_zones(self, project_id: str) -> Sequence[ZoneResponse]: ...

    async def list_instances(
        self, project_id: str, zone_id: str, filter: str | None = None,
    ) -> Sequence[InstanceResponse]: ...

    async def get_instance(self, locator: InstanceLocator) -> InstanceResponse: ...

    async def create_instance(
        self, project_id: str, zone_id: str, body: InstanceBody,
    ) -> Operation: ...

    async def delete_instance(self, locator: InstanceLocator) -> Operation: ...

    async def list_firewalls(self, project_id: str, name: str) -> Sequence[FirewallResponse]: ...

    async def create_firewall(self, project_id: str, body: FirewallBody) -> Operation: ...

    async def create_static_ip(
        self, project_id: str, region_id: str, body: StaticIpBody,
    ) -> Operation: ...

    async def get_zone_operation(self, project_id: str, zone_id: str, name: str) -> Operation: ...

    async def get_region_operation(
        self, project_id: str, region_id: str, name: str,
    ) -> Operation: ...

    async def get_global_operation(self, project_id: str, name: str) -> Operation: ...

    # ─── Resource Manager ────────────────────────────────────────────

    async def list_projects(self, filter: str) -> Sequence[ProjectResponse]: ...

    async def create_project(self, body: ProjectBody) -> Operation: ...

    async def get_resource_manager_operation(self, name: str) -> Operation: ...

    # ─── Billing ─────────────────────────────────────────────────────

    async def get_project_billing_info(self, project_id: str) -> BillingInfoResponse: ...

    async def update_project_billing_info(
        self, project_id: str, billing_account_id: str,
    ) -> BillingInfoResponse: ...

    async def list_billing_accounts(self) -> Sequence[BillingAccountResponse]: ...

    # ─── Service Usage ───────────────────────────────────────────────

    async def enable_services(self, project_id: str, service_ids: Sequence[str]) -> Operation: ...

    async def get_service_usage_operation(self, name: str) -> Operation: ...

    async def list_enabled_services(self, project_id: str) -> Sequence[ServiceResponse]: ...
