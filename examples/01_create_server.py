"""Create an Outline server.

Demonstrates the server lifecycle:
- Pick a usable zone from the project's locations
- Create the VM and get a handle back as soon as it exists
- Wait for the firewall rule and static IP to be in place

    ┌──────────────────────────────────────────────┐
    │  create_server ──► VM running ──► handle     │
    │                         │                    │
    │            ┌────────────┴────────────┐       │
    │        firewall                 static IP    │
    │            └────────────┬────────────┘       │
    │                    wait_ready()              │
    └──────────────────────────────────────────────┘

Requires OUTLINE_REFRESH_TOKEN, OUTLINE_PROJECT and an outline.toml with
the OAuth client_id and client_secret under [gcp].
"""
import asyncio
import os

import outline_manager as om


async def main() -> None:
    config = om.GcpConfig.from_toml()
    project_id = os.environ["OUTLINE_PROJECT"]

    async with om.GcpAccount("local", os.environ["OUTLINE_REFRESH_TOKEN"], config=config) as account:
        print(f"Signed in as {await account.get_name()}")

        locations = await account.list_locations(project_id)
        region, zones = next((r, z) for r, z in sorted(locations.items()) if z)
        print(f"Using {zones[0]} ({region})")

        server = await account.create_server(project_id, "Example server", zones[0])
        print(f"Created {server.name} (id={server.id})")

        try:
            await server.wait_ready()
        except om.OperationFailed as e:
            print(f"Setup failed: {e}")
            return
        print("Firewall and static IP ready")

        for s in await account.list_servers(project_id):
            print(f"  {s.name:<28} {s.locator.zone_id}")


if __name__ == "__main__":
    handler_ids = om.setup_logging(om.LogConfig(console=True, level="INFO"))
    try:
        asyncio.run(main())
    finally:
        om.teardown_logging(handler_ids)
