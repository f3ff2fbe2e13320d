from __future__ import annotations

import asyncio

from outline_manager.config import GcpConfig
from outline_manager.errors import (
    BillingLinkFailed,
    ProjectCreationFailed,
    ServiceEnablementFailed,
    step_failure,
)
from outline_manager.gcp.protocols import CloudApi
from outline_manager.gcp.types import ProjectBody
from outline_manager.model import Project
from outline_manager.observability.logger import logger

from .poller import OperationPoller

log = logger.bind(component="projects")


class ProjectProvisioner:
    """Creates billing-linked projects with the required services enabled."""

    def __init__(self, api: CloudApi, config: GcpConfig, poller: OperationPoller) -> None:
        self._api = api
        self._config = config
        self._poller = poller

    async def create_project(
        self,
        project_id: str,
        billing_account_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Project:
        """Create and configure a project.

        Raises:
            ProjectCreationFailed: The project was not created; nothing was configured.
            BillingLinkFailed: The project exists but is not linked to billing.
            ServiceEnablementFailed: The project exists but its services are not enabled.
        """
        display_name = self._config.project_display_name
        body = ProjectBody(
            projectId=project_id,
            name=display_name,
            labels={self._config.label_key: "true"},
        )
        log.info("Creating project {pid}", pid=project_id)
        with step_failure(ProjectCreationFailed, f"create/{project_id}"):
            operation = await self._api.create_project(body)
            done = await self._poller.wait(
                operation, self._api.get_resource_manager_operation, cancel=cancel,
            )
        if done.failed:
            raise ProjectCreationFailed(done.name, done.error)

        await self.configure_project(project_id, billing_account_id, cancel=cancel)
        return Project(id=project_id, name=display_name)

    async def configure_project(
        self,
        project_id: str,
        billing_account_id: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Link billing, then enable the required services.

        Service enablement needs billing, so the steps run in order.

        Raises:
            BillingLinkFailed: The billing account could not be linked.
            ServiceEnablementFailed: The services could not be enabled.
        """
        log.info(
            "Linking project {pid} to billing account {bid}",
            pid=project_id, bid=billing_account_id,
        )
        with step_failure(BillingLinkFailed, f"billing/{project_id}"):
            await self._api.update_project_billing_info(project_id, billing_account_id)

        services = self._config.required_services
        log.info("Enabling services {services} on {pid}", services=", ".join(services), pid=project_id)
        with step_failure(ServiceEnablementFailed, f"services/{project_id}"):
            operation = await self._api.enable_services(project_id, services)
            done = await self._poller.wait(
                operation, self._api.get_service_usage_operation, cancel=cancel,
            )
        if done.failed:
            raise ServiceEnablementFailed(done.name, done.error)

    repair_project = configure_project
