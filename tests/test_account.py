from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from outline_manager import BillingAccount, GcpAccount, Project
from outline_manager.gcp.client import GcpApiClient

pytestmark = [pytest.mark.unit]

FIXED_NOW = datetime(2024, 3, 7, 9, 5, 3, tzinfo=UTC)


def _zone(name: str, status: str) -> dict[str, str]:
    region = name.rsplit("-", 1)[0]
    return {"name": name, "status": status, "region": f"regions/{region}"}


@pytest.fixture
def account(api, config) -> GcpAccount:
    return GcpAccount("acct-1", "refresh-token", config=config, api=api, clock=lambda: FIXED_NOW)


class TestIdentity:
    def test_accessors(self, account):
        assert account.get_id() == "acct-1"
        assert account.get_refresh_token() == "refresh-token"

    @pytest.mark.asyncio
    async def test_get_name_is_email(self, account):
        assert await account.get_name() == "operator@example.com"

    def test_default_api_is_rest_client(self, config):
        account = GcpAccount("acct-1", "refresh-token", config=config)
        assert isinstance(account._api, GcpApiClient)


class TestServers:
    @pytest.mark.asyncio
    async def test_create_server_in_zone_without_firewall(self, api, account):
        server = await account.create_server("proj-1", "Tokyo", "us-central1-a")
        await server.wait_ready()

        assert api.count("create_firewall") == 1
        assert api.count("create_static_ip") == 1
        (_, (_, region, body)), = [c for c in api.calls if c[0] == "create_static_ip"]
        assert region == "us-central1"
        assert body["address"] == api.nat_ip
        assert re.fullmatch(r"outline-\d{8}-\d{6}", server.name)
        assert server.name == FIXED_NOW.strftime("outline-%Y%m%d-%H%M%S")

    @pytest.mark.asyncio
    async def test_created_server_is_listed(self, account):
        created = await account.create_server("proj-1", "Tokyo", "us-central1-a")
        await created.wait_ready()

        servers = await account.list_servers("proj-1")

        assert [(s.id, s.name) for s in servers] == [(created.id, created.name)]
        assert servers[0].locator == created.locator

    @pytest.mark.asyncio
    async def test_close_waits_for_setup(self, account):
        server = await account.create_server("proj-1", "", "us-central1-a")
        await account.close()
        assert server.completion.done()


class TestLocations:
    @pytest.mark.asyncio
    async def test_groups_up_zones_by_region(self, api, account):
        api.zones = [
            _zone("us-central1-a", "UP"),
            _zone("us-central1-b", "DOWN"),
            _zone("us-central1-c", "UP"),
            _zone("europe-west1-b", "UP"),
            _zone("asia-east1-a", "DOWN"),
        ]

        locations = await account.list_locations("proj-1")

        assert locations == {
            "us-central1": ["us-central1-a", "us-central1-c"],
            "europe-west1": ["europe-west1-b"],
            "asia-east1": [],
        }

    @pytest.mark.asyncio
    async def test_never_lists_unusable_zones(self, api, account):
        api.zones = [_zone(f"us-east{i}-b", status) for i, status in
                     enumerate(["UP", "DOWN", "MAINTENANCE", "UP"])]

        locations = await account.list_locations("proj-1")

        listed = [z for zones in locations.values() for z in zones]
        assert listed == ["us-east0-b", "us-east3-b"]


class TestProjects:
    @pytest.mark.asyncio
    async def test_list_projects_filter(self, api, account):
        api.projects = [{"projectId": "proj-1", "name": "Outline servers"}]

        projects = await account.list_projects()

        assert projects == [Project(id="proj-1", name="Outline servers")]
        (_, (query,)), = [c for c in api.calls if c[0] == "list_projects"]
        assert query == "labels.outline=true AND lifecycleState=ACTIVE"

    @pytest.mark.asyncio
    async def test_create_then_check_health(self, api, account):
        project = await account.create_project("proj-1", "BILL-1")

        assert project == Project(id="proj-1", name="Outline servers")
        assert await account.is_project_healthy("proj-1") is True

    @pytest.mark.asyncio
    async def test_repair(self, api, account):
        api.billing_enabled = False
        assert await account.is_project_healthy("proj-1") is False

        await account.repair_project("proj-1", "BILL-1")

        assert api.billing == {"proj-1": "BILL-1"}


class TestBillingAccounts:
    @pytest.mark.asyncio
    async def test_only_open_accounts_with_bare_ids(self, api, account):
        api.billing_accounts = [
            {"name": "billingAccounts/0123AB-4567CD-89EF01", "displayName": "Main", "open": True},
            {"name": "billingAccounts/CLOSED-000000-000000", "displayName": "Old", "open": False},
            {"name": "billingAccounts/FEDCBA-654321-0FEDCB", "displayName": "Side", "open": True},
        ]

        accounts = await account.list_open_billing_accounts()

        assert accounts == [
            BillingAccount(id="0123AB-4567CD-89EF01", name="Main"),
            BillingAccount(id="FEDCBA-654321-0FEDCB", name="Side"),
        ]
        assert all(a.open for a in accounts)

    @pytest.mark.asyncio
    async def test_none(self, account):
        assert await account.list_open_billing_accounts() == []
