from __future__ import annotations

import asyncio

from outline_manager.config import GcpConfig
from outline_manager.gcp.protocols import CloudApi
from outline_manager.observability.logger import logger

from .projects import ProjectProvisioner

log = logger.bind(component="health")


class ProjectHealthChecker:
    def __init__(self, api: CloudApi, config: GcpConfig, projects: ProjectProvisioner) -> None:
        self._api = api
        self._config = config
        self._projects = projects

    async def is_project_healthy(self, project_id: str) -> bool:
        """True iff billing is enabled and every required service is enabled."""
        billing = await self._api.get_project_billing_info(project_id)
        if not billing.get("billingEnabled", False):
            log.info("Project {pid} has billing disabled", pid=project_id)
            return False

        services = await self._api.list_enabled_services(project_id)
        enabled = {service["config"]["name"] for service in services}
        if missing := [s for s in self._config.required_services if s not in enabled]:
            log.info(
                "Project {pid} is missing services {missing}",
                pid=project_id, missing=", ".join(missing),
            )
            return False
        return True

    async def repair_project(
        self,
        project_id: str,
        billing_account_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Re-link billing and re-enable services, whatever was wrong."""
        await self._projects.repair_project(project_id, billing_account_id, cancel=cancel)
