"""outline_manager - provision Outline VPN servers on Google Cloud.

Example:

    import asyncio
    from outline_manager import GcpAccount, GcpConfig

    async def main():
        config = GcpConfig.from_toml()
        async with GcpAccount("me", refresh_token, config=config) as account:
            project = await account.create_project("outline-1234", "0123AB-4567CD-89EF01")
            server = await account.create_server(project.id, "Tokyo", "asia-northeast1-a")
            await server.wait_ready()

    asyncio.run(main())
"""

from outline_manager.account import GcpAccount
from outline_manager.completion import Completion
from outline_manager.config import GcpConfig, load_config
from outline_manager.errors import (
    ApiError,
    BillingLinkFailed,
    FirewallCreationFailed,
    InstanceCreationFailed,
    IpPromotionFailed,
    OperationCancelled,
    OperationFailed,
    OperationTimeout,
    OutlineError,
    ProjectCreationFailed,
    ServiceEnablementFailed,
)
from outline_manager.model import (
    BillingAccount,
    InstanceLocator,
    Operation,
    Project,
    ServerHandle,
    ZoneMap,
)
from outline_manager.observability.logging import LogConfig, setup_logging, teardown_logging

__all__ = [
    "ApiError",
    "BillingAccount",
    "BillingLinkFailed",
    "Completion",
    "FirewallCreationFailed",
    "GcpAccount",
    "GcpConfig",
    "InstanceCreationFailed",
    "InstanceLocator",
    "IpPromotionFailed",
    "LogConfig",
    "Operation",
    "OperationCancelled",
    "OperationFailed",
    "OperationTimeout",
    "OutlineError",
    "Project",
    "ProjectCreationFailed",
    "ServerHandle",
    "ServiceEnablementFailed",
    "ZoneMap",
    "load_config",
    "setup_logging",
    "teardown_logging",
]
