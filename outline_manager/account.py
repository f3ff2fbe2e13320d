"""The Google Cloud account as seen by the server manager UI.

Composes the provisioning flows into one caller-facing surface.

Example:
    async with GcpAccount("acct-1", refresh_token, config=config) as account:
        server = await account.create_server("my-project", "Tokyo", "asia-northeast1-a")
        await server.wait_ready()
"""

from __future__ import annotations

import asyncio

from outline_manager.config import GcpConfig
from outline_manager.gcp.client import GcpApiClient
from outline_manager.gcp.protocols import CloudApi
from outline_manager.model import BillingAccount, Project, ServerHandle, ZoneMap, resource_id
from outline_manager.observability.logger import logger
from outline_manager.provisioning import (
    FirewallManager,
    InstanceProvisioner,
    IpPromoter,
    OperationPoller,
    ProjectHealthChecker,
    ProjectProvisioner,
)
from outline_manager.provisioning.instances import Clock, utcnow


class GcpAccount:
    """An authenticated Google Cloud account able to host Outline servers.

    Args:
        id: Stable identifier of the account in the caller's store.
        refresh_token: OAuth2 refresh token. Only used when ``api`` is not given.
        config: Provisioning configuration. Defaults to ``GcpConfig()``.
        api: Cloud API implementation. Defaults to a REST client for ``refresh_token``.
        clock: Wall clock used to name new instances.
    """

    def __init__(
        self,
        id: str,
        refresh_token: str,
        *,
        config: GcpConfig | None = None,
        api: CloudApi | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._id = id
        self._refresh_token = refresh_token
        self._config = config or GcpConfig()
        self._owns_api = api is None
        self._api: CloudApi = api or GcpApiClient.from_refresh_token(refresh_token, self._config)
        self._log = logger.bind(component="account", account=id)

        poller = OperationPoller.from_config(self._config)
        firewall = FirewallManager(self._api, self._config, poller)
        promoter = IpPromoter(self._api, poller)
        self._instances = InstanceProvisioner(
            self._api, self._config, poller, firewall, promoter, clock=clock,
        )
        self._projects = ProjectProvisioner(self._api, self._config, poller)
        self._health = ProjectHealthChecker(self._api, self._config, self._projects)

    async def __aenter__(self) -> GcpAccount:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Wait for background server setup, then release the API client."""
        await self._instances.wait_background()
        if self._owns_api and isinstance(self._api, GcpApiClient):
            await self._api.close()

    def get_id(self) -> str:
        return self._id

    def get_refresh_token(self) -> str:
        return self._refresh_token

    async def get_name(self) -> str:
        """Email address of the account."""
        user_info = await self._api.get_user_info()
        return user_info["email"]

    # ─── Servers ─────────────────────────────────────────────────────

    async def create_server(
        self,
        project_id: str,
        description: str,
        zone_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> ServerHandle:
        server = await self._instances.create_instance(
            project_id, description, zone_id, cancel=cancel,
        )
        self._log.info("Created server {name} ({iid})", name=server.name, iid=server.id)
        return server

    async def list_servers(self, project_id: str) -> list[ServerHandle]:
        return await self._instances.list_instances(project_id)

    async def list_locations(self, project_id: str) -> ZoneMap:
        """Usable zones grouped by region.

        Every region seen gets an entry; only zones with status ``UP`` are listed.
        """
        zones = await self._api.list_zones(project_id)
        result: ZoneMap = {}
        for zone in zones:
            region = resource_id(zone["region"])
            usable = result.setdefault(region, [])
            if zone["status"] == "UP":
                usable.append(zone["name"])
        return result

    # ─── Projects ────────────────────────────────────────────────────

    async def list_projects(self) -> list[Project]:
        query = f"{self._config.label_filter} AND lifecycleState=ACTIVE"
        projects = await self._api.list_projects(query)
        return [Project(id=p["projectId"], name=p["name"]) for p in projects]

    async def create_project(
        self,
        project_id: str,
        billing_account_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Project:
        return await self._projects.create_project(project_id, billing_account_id, cancel=cancel)

    async def is_project_healthy(self, project_id: str) -> bool:
        return await self._health.is_project_healthy(project_id)

    async def repair_project(
        self,
        project_id: str,
        billing_account_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        await self._health.repair_project(project_id, billing_account_id, cancel=cancel)

    async def list_open_billing_accounts(self) -> list[BillingAccount]:
        accounts = await self._api.list_billing_accounts()
        return [
            BillingAccount(id=resource_id(a["name"]), name=a["displayName"], open=a["open"])
            for a in accounts
            if a.get("open")
        ]
