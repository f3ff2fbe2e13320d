from __future__ import annotations

import asyncio
import itertools
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import pytest

from outline_manager.config import GcpConfig
from outline_manager.errors import ApiError
from outline_manager.model import InstanceLocator, Operation
from outline_manager.provisioning import (
    FirewallManager,
    InstanceProvisioner,
    IpPromoter,
    OperationPoller,
    ProjectProvisioner,
)

FIXED_NOW = datetime(2024, 3, 7, 9, 5, 3, tzinfo=UTC)


class FakeCloudApi:
    """In-memory CloudApi recording every call.

    Operations finish after ``pending_polls`` polls (0 = done on creation).
    ``operation_errors`` maps an operation kind to the error payload its
    terminal state carries. ``blockers`` holds events a method awaits before
    doing anything, ``failures`` exceptions a method raises.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.pending_polls = 0
        self.operation_errors: dict[str, Any] = {}
        self.blockers: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}

        self.email = "operator@example.com"
        self.zones: list[dict[str, Any]] = [
            _zone("us-central1-a", "UP"),
            _zone("us-central1-b", "UP"),
            _zone("europe-west1-b", "UP"),
        ]
        self.instances: dict[str, list[dict[str, Any]]] = {}
        self.firewalls: list[dict[str, Any]] = []
        self.static_ips: list[dict[str, Any]] = []
        self.projects: list[dict[str, Any]] = []
        self.billing: dict[str, str] = {}
        self.billing_enabled = True
        self.enabled_services: list[str] = []
        self.billing_accounts: list[dict[str, Any]] = []
        self.nat_ip = "203.0.113.7"

        self._ids = itertools.count(1)
        self._remaining: dict[str, int] = {}
        self._kinds: dict[str, tuple[str, str | None]] = {}
        self._pending_firewalls: dict[str, dict[str, Any]] = {}

    # ─── Bookkeeping ─────────────────────────────────────────────────

    async def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if blocker := self.blockers.get(method):
            await blocker.wait()
        if failure := self.failures.get(method):
            raise failure

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _start(self, kind: str, target_id: str | None = None) -> Operation:
        name = f"operation-{kind}-{next(self._ids)}"
        self._remaining[name] = self.pending_polls
        self._kinds[name] = (kind, target_id)
        return self._snapshot(name)

    def _snapshot(self, name: str) -> Operation:
        kind, target_id = self._kinds[name]
        done = self._remaining[name] <= 0
        error = self.operation_errors.get(kind) if done else None
        # A firewall rule is listed only once its create operation succeeded.
        if done and (rule := self._pending_firewalls.pop(name, None)) and not error:
            self.firewalls.append(rule)
        return Operation(name=name, done=done, error=error, target_id=target_id)

    def _poll(self, name: str) -> Operation:
        self._remaining[name] -= 1
        return self._snapshot(name)

    # ─── CloudApi ────────────────────────────────────────────────────

    async def get_user_info(self) -> dict[str, Any]:
        await self._record("get_user_info")
        return {"email": self.email, "sub": "1234"}

    async def list_zones(self, project_id: str) -> Sequence[dict[str, Any]]:
        await self._record("list_zones", project_id)
        return list(self.zones)

    async def list_instances(
        self, project_id: str, zone_id: str, filter: str | None = None,
    ) -> Sequence[dict[str, Any]]:
        await self._record("list_instances", project_id, zone_id, filter)
        instances = self.instances.get(zone_id, [])
        if filter == "labels.outline=true":
            return [i for i in instances if i.get("labels", {}).get("outline") == "true"]
        return list(instances)

    async def get_instance(self, locator: InstanceLocator) -> dict[str, Any]:
        await self._record("get_instance", locator)
        for instance in self.instances.get(locator.zone_id, []):
            if instance["id"] == locator.instance_id:
                return instance
        raise KeyError(locator.instance_id)

    async def create_instance(self, project_id: str, zone_id: str, body: Any) -> Operation:
        await self._record("create_instance", project_id, zone_id, body)
        instance_id = str(1000 + len(self.calls))
        access = {"name": "External NAT", "natIP": self.nat_ip} if self.nat_ip else {}
        self.instances.setdefault(zone_id, []).append({
            "id": instance_id,
            "name": body["name"],
            "description": body["description"],
            "zone": f"https://www.googleapis.com/compute/v1/projects/{project_id}/zones/{zone_id}",
            "labels": dict(body["labels"]),
            "networkInterfaces": [{"network": body["networkInterfaces"][0]["network"],
                                   "accessConfigs": [access]}],
        })
        return self._start("instance", instance_id)

    async def delete_instance(self, locator: InstanceLocator) -> Operation:
        await self._record("delete_instance", locator)
        zone = self.instances.get(locator.zone_id, [])
        self.instances[locator.zone_id] = [i for i in zone if i["id"] != locator.instance_id]
        return self._start("delete", locator.instance_id)

    async def list_firewalls(self, project_id: str, name: str) -> Sequence[dict[str, Any]]:
        await self._record("list_firewalls", project_id, name)
        return [f for f in self.firewalls if f["name"] == name]

    async def create_firewall(self, project_id: str, body: Any) -> Operation:
        await self._record("create_firewall", project_id, body)
        taken = [*self.firewalls, *self._pending_firewalls.values()]
        if any(rule["name"] == body["name"] for rule in taken):
            raise ApiError("POST", f"/projects/{project_id}/global/firewalls", 409, "alreadyExists")
        name = f"operation-firewall-{next(self._ids)}"
        self._pending_firewalls[name] = dict(body)
        self._remaining[name] = self.pending_polls
        self._kinds[name] = ("firewall", None)
        return self._snapshot(name)

    async def create_static_ip(self, project_id: str, region_id: str, body: Any) -> Operation:
        await self._record("create_static_ip", project_id, region_id, body)
        self.static_ips.append(dict(body))
        return self._start("address")

    async def get_zone_operation(self, project_id: str, zone_id: str, name: str) -> Operation:
        await self._record("get_zone_operation", project_id, zone_id, name)
        return self._poll(name)

    async def get_region_operation(self, project_id: str, region_id: str, name: str) -> Operation:
        await self._record("get_region_operation", project_id, region_id, name)
        return self._poll(name)

    async def get_global_operation(self, project_id: str, name: str) -> Operation:
        await self._record("get_global_operation", project_id, name)
        return self._poll(name)

    async def list_projects(self, filter: str) -> Sequence[dict[str, Any]]:
        await self._record("list_projects", filter)
        return list(self.projects)

    async def create_project(self, body: Any) -> Operation:
        await self._record("create_project", body)
        self.projects.append({"projectId": body["projectId"], "name": body["name"]})
        return self._start("project")

    async def get_resource_manager_operation(self, name: str) -> Operation:
        await self._record("get_resource_manager_operation", name)
        return self._poll(name)

    async def get_project_billing_info(self, project_id: str) -> dict[str, Any]:
        await self._record("get_project_billing_info", project_id)
        return {"name": f"projects/{project_id}/billingInfo", "billingEnabled": self.billing_enabled}

    async def update_project_billing_info(
        self, project_id: str, billing_account_id: str,
    ) -> dict[str, Any]:
        await self._record("update_project_billing_info", project_id, billing_account_id)
        self.billing[project_id] = billing_account_id
        return {"billingAccountName": f"billingAccounts/{billing_account_id}", "billingEnabled": True}

    async def list_billing_accounts(self) -> Sequence[dict[str, Any]]:
        await self._record("list_billing_accounts")
        return list(self.billing_accounts)

    async def enable_services(self, project_id: str, service_ids: Sequence[str]) -> Operation:
        await self._record("enable_services", project_id, tuple(service_ids))
        for service in service_ids:
            if service not in self.enabled_services:
                self.enabled_services.append(service)
        return self._start("services")

    async def get_service_usage_operation(self, name: str) -> Operation:
        await self._record("get_service_usage_operation", name)
        return self._poll(name)

    async def list_enabled_services(self, project_id: str) -> Sequence[dict[str, Any]]:
        await self._record("list_enabled_services", project_id)
        return [
            {"name": f"projects/123/services/{s}", "config": {"name": s}, "state": "ENABLED"}
            for s in self.enabled_services
        ]


def _zone(name: str, status: str) -> dict[str, Any]:
    region = name.rsplit("-", 1)[0]
    return {
        "name": name,
        "status": status,
        "region": f"https://www.googleapis.com/compute/v1/projects/p/regions/{region}",
    }


@pytest.fixture
def api() -> FakeCloudApi:
    return FakeCloudApi()


@pytest.fixture
def config() -> GcpConfig:
    return GcpConfig(poll_interval=0.0, operation_timeout=5.0)


@pytest.fixture
def poller(config: GcpConfig) -> OperationPoller:
    return OperationPoller.from_config(config)


@pytest.fixture
def firewall(api: FakeCloudApi, config: GcpConfig, poller: OperationPoller) -> FirewallManager:
    return FirewallManager(api, config, poller)


@pytest.fixture
def promoter(api: FakeCloudApi, poller: OperationPoller) -> IpPromoter:
    return IpPromoter(api, poller)


@pytest.fixture
def instances(
    api: FakeCloudApi,
    config: GcpConfig,
    poller: OperationPoller,
    firewall: FirewallManager,
    promoter: IpPromoter,
) -> InstanceProvisioner:
    return InstanceProvisioner(api, config, poller, firewall, promoter, clock=lambda: FIXED_NOW)


@pytest.fixture
def projects(api: FakeCloudApi, config: GcpConfig, poller: OperationPoller) -> ProjectProvisioner:
    return ProjectProvisioner(api, config, poller)
