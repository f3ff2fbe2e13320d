"""Project Setup.

Creates a project for Outline servers, links it to the first open billing
account and checks its health, repairing it when billing was unlinked or
the Compute Engine API was disabled.

Requires OUTLINE_REFRESH_TOKEN and an outline.toml with the OAuth
client_id and client_secret under [gcp].
"""
import asyncio
import os
import sys
from datetime import datetime

import outline_manager as om


async def main() -> None:
    config = om.GcpConfig.from_toml()

    async with om.GcpAccount("local", os.environ["OUTLINE_REFRESH_TOKEN"], config=config) as account:
        billing_accounts = await account.list_open_billing_accounts()
        if not billing_accounts:
            sys.exit("No open billing account")
        billing = billing_accounts[0]
        print(f"Billing account: {billing.name} ({billing.id})")

        existing = await account.list_projects()
        if existing:
            project = existing[0]
            print(f"Reusing project {project.id}")
        else:
            project_id = f"outline-{datetime.now():%Y%m%d%H%M}"
            project = await account.create_project(project_id, billing.id)
            print(f"Created project {project.id}")

        if await account.is_project_healthy(project.id):
            print("Project is healthy")
            return

        print("Project needs repair")
        await account.repair_project(project.id, billing.id)
        print(f"Healthy after repair: {await account.is_project_healthy(project.id)}")


if __name__ == "__main__":
    handler_ids = om.setup_logging(om.LogConfig(console=True))
    try:
        asyncio.run(main())
    finally:
        om.teardown_logging(handler_ids)
