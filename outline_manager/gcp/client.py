"""Async REST client for the Google Cloud APIs used to provision servers.

Talks JSON to Compute Engine, Resource Manager, Service Usage, Cloud
Billing and the OpenID userinfo endpoint with one OAuth2 identity.

Example:
    async with GcpApiClient.from_refresh_token(token, config) as api:
        zones = await api.list_zones("my-project")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from outline_manager.config import GcpConfig
from outline_manager.errors import ApiError
from outline_manager.infra.http import Auth, HttpClient, HttpError, RefreshTokenAuth
from outline_manager.model import InstanceLocator, Operation
from outline_manager.observability.logger import logger
from outline_manager.retry import TRANSIENT_STATUS_CODES, on_status_code, retry

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

_transient = retry(on=on_status_code(*TRANSIENT_STATUS_CODES), max_attempts=3, base_delay=1.0)


@dataclass(frozen=True, slots=True)
class Endpoints:
    compute: str = "https://compute.googleapis.com/compute/v1"
    resource_manager: str = "https://cloudresourcemanager.googleapis.com/v1"
    service_usage: str = "https://serviceusage.googleapis.com/v1"
    billing: str = "https://cloudbilling.googleapis.com/v1"
    userinfo: str = "https://openidconnect.googleapis.com/v1"


class GcpApiClient:
    """``CloudApi`` implementation over the public Google REST endpoints."""

    def __init__(
        self,
        auth: Auth,
        *,
        endpoints: Endpoints | None = None,
        timeout: float = 30.0,
    ) -> None:
        endpoints = endpoints or Endpoints()
        headers = {"Content-Type": "application/json"}
        self._compute = HttpClient(endpoints.compute, auth, timeout=timeout, default_headers=headers)
        self._resource_manager = HttpClient(
            endpoints.resource_manager, auth, timeout=timeout, default_headers=headers,
        )
        self._service_usage = HttpClient(
            endpoints.service_usage, auth, timeout=timeout, default_headers=headers,
        )
        self._billing = HttpClient(endpoints.billing, auth, timeout=timeout, default_headers=headers)
        self._userinfo = HttpClient(endpoints.userinfo, auth, timeout=timeout)
        self._log = logger.bind(component="gcp-api")

    @classmethod
    def from_refresh_token(
        cls,
        refresh_token: str,
        config: GcpConfig,
        *,
        endpoints: Endpoints | None = None,
    ) -> GcpApiClient:
        auth = RefreshTokenAuth(refresh_token, config.client_id, config.client_secret)
        return cls(auth, endpoints=endpoints, timeout=config.request_timeout)

    async def __aenter__(self) -> GcpApiClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        for http in (
            self._compute, self._resource_manager, self._service_usage,
            self._billing, self._userinfo,
        ):
            await http.close()

    async def _request(
        self,
        http: HttpClient,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            return await http.request(method, path, json=json, params=params)
        except HttpError as e:
            self._log.warning(
                "API error {method} {path}: {status}",
                method=method, path=path, status=e.status,
            )
            raise ApiError(method, e.url or http.base_url + path, e.status, e.body, e.reason) from e

    async def _paginate(
        self,
        http: HttpClient,
        path: str,
        key: str,
        params: dict[str, Any] | None = None,
    ) -> list[Any]:
        items: list[Any] = []
        query = dict(params or {})
        while True:
            page = await self._request(http, "GET", path, params=query) or {}
            items.extend(page.get(key) or [])
            if not (token := page.get("nextPageToken")):
                return items
            query["pageToken"] = token

    # =========================================================================
    # Identity
    # =========================================================================

    @_transient
    async def get_user_info(self) -> UserInfoResponse:
        return await self._request(self._userinfo, "GET", "/userinfo")

    # =========================================================================
    # Compute Engine
    # =========================================================================

    @_transient
    async def list_zones(self, project_id: str) -> list[ZoneResponse]:
        return await self._paginate(self._compute, f"/projects/{project_id}/zones", "items")

    @_transient
    async def list_instances(
        self, project_id: str, zone_id: str, filter: str | None = None,
    ) -> list[InstanceResponse]:
        return await self._paginate(
            self._compute,
            f"/projects/{project_id}/zones/{zone_id}/instances",
            "items",
            {"filter": filter} if filter else None,
        )

    @_transient
    async def get_instance(self, locator: InstanceLocator) -> InstanceResponse:
        return await self._request(
            self._compute,
            "GET",
            f"/projects/{locator.project_id}/zones/{locator.zone_id}/instances/{locator.instance_id}",
        )

    async def create_instance(
        self, project_id: str, zone_id: str, body: InstanceBody,
    ) -> Operation:
        self._log.debug("Creating instance {name} in {zone}", name=body["name"], zone=zone_id)
        data = await self._request(
            self._compute, "POST", f"/projects/{project_id}/zones/{zone_id}/instances",
            json=dict(body),
        )
        return compute_operation(data)

    async def delete_instance(self, locator: InstanceLocator) -> Operation:
        self._log.debug("Deleting instance {iid}", iid=locator.instance_id)
        data = await self._request(
            self._compute,
            "DELETE",
            f"/projects/{locator.project_id}/zones/{locator.zone_id}/instances/{locator.instance_id}",
        )
        return compute_operation(data)

    @_transient
    async def list_firewalls(self, project_id: str, name: str) -> list[FirewallResponse]:
        return await self._paginate(
            self._compute, f"/projects/{project_id}/global/firewalls", "items",
            {"filter": f"name={name}"},
        )

    async def create_firewall(self, project_id: str, body: FirewallBody) -> Operation:
        data = await self._request(
            self._compute, "POST", f"/projects/{project_id}/global/firewalls", json=dict(body),
        )
        return compute_operation(data)

    async def create_static_ip(
        self, project_id: str, region_id: str, body: StaticIpBody,
    ) -> Operation:
        data = await self._request(
            self._compute, "POST", f"/projects/{project_id}/regions/{region_id}/addresses",
            json=dict(body),
        )
        return compute_operation(data)

    @_transient
    async def get_zone_operation(self, project_id: str, zone_id: str, name: str) -> Operation:
        data = await self._request(
            self._compute, "GET", f"/projects/{project_id}/zones/{zone_id}/operations/{name}",
        )
        return compute_operation(data)

    @_transient
    async def get_region_operation(
        self, project_id: str, region_id: str, name: str,
    ) -> Operation:
        data = await self._request(
            self._compute, "GET", f"/projects/{project_id}/regions/{region_id}/operations/{name}",
        )
        return compute_operation(data)

    @_transient
    async def get_global_operation(self, project_id: str, name: str) -> Operation:
        data = await self._request(
            self._compute, "GET", f"/projects/{project_id}/global/operations/{name}",
        )
        return compute_operation(data)

    # =========================================================================
    # Resource Manager
    # =========================================================================

    @_transient
    async def list_projects(self, filter: str) -> list[ProjectResponse]:
        return await self._paginate(
            self._resource_manager, "/projects", "projects", {"filter": filter},
        )

    async def create_project(self, body: ProjectBody) -> Operation:
        self._log.debug("Creating project {pid}", pid=body["projectId"])
        data = await self._request(self._resource_manager, "POST", "/projects", json=dict(body))
        return longrunning_operation(data)

    @_transient
    async def get_resource_manager_operation(self, name: str) -> Operation:
        data = await self._request(self._resource_manager, "GET", f"/{name}")
        return longrunning_operation(data)

    # =========================================================================
    # Billing
    # =========================================================================

    @_transient
    async def get_project_billing_info(self, project_id: str) -> BillingInfoResponse:
        return await self._request(self._billing, "GET", f"/projects/{project_id}/billingInfo")

    async def update_project_billing_info(
        self, project_id: str, billing_account_id: str,
    ) -> BillingInfoResponse:
        body = {
            "name": f"projects/{project_id}/billingInfo",
            "projectId": project_id,
            "billingAccountName": f"billingAccounts/{billing_account_id}",
        }
        return await self._request(
            self._billing, "PUT", f"/projects/{project_id}/billingInfo", json=body,
        )

    @_transient
    async def list_billing_accounts(self) -> list[BillingAccountResponse]:
        return await self._paginate(self._billing, "/billingAccounts", "billingAccounts")

    # =========================================================================
    # Service Usage
    # =========================================================================

    async def enable_services(self, project_id: str, service_ids: Sequence[str]) -> Operation:
        data = await self._request(
            self._service_usage, "POST", f"/projects/{project_id}/services:batchEnable",
            json={"serviceIds": list(service_ids)},
        )
        return longrunning_operation(data)

    @_transient
    async def get_service_usage_operation(self, name: str) -> Operation:
        data = await self._request(self._service_usage, "GET", f"/{name}")
        return longrunning_operation(data)

    @_transient
    async def list_enabled_services(self, project_id: str) -> list[ServiceResponse]:
        return await self._paginate(
            self._service_usage, f"/projects/{project_id}/services", "services",
            {"filter": "state:ENABLED"},
        )


# =============================================================================
# Pure helper functions (no API calls)
# =============================================================================


def compute_operation(data: dict[str, Any]) -> Operation:
    """Normalize a Compute Engine operation (``status == "DONE"`` is terminal)."""
    target_id = data.get("targetId")
    return Operation(
        name=data["name"],
        done=data.get("status") == "DONE",
        error=data.get("error"),
        target_id=str(target_id) if target_id is not None else None,
    )


def longrunning_operation(data: dict[str, Any]) -> Operation:
    """Normalize a google.longrunning operation (``done: true`` is terminal)."""
    return Operation(
        name=data["name"],
        done=bool(data.get("done", False)),
        error=data.get("error"),
    )
