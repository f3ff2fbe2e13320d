"""Google Cloud REST payload types.

TypedDicts for API responses and request bodies. Only the fields the
provisioning flows read or write are declared.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict

# ─── Compute Engine ──────────────────────────────────────────────────


class AccessConfig(TypedDict, total=False):
    name: str
    type: str
    natIP: str


class NetworkInterface(TypedDict, total=False):
    network: str
    accessConfigs: list[AccessConfig]


class InstanceResponse(TypedDict):
    id: str
    name: str
    zone: str
    status: NotRequired[str]
    description: NotRequired[str]
    labels: NotRequired[dict[str, str]]
    networkInterfaces: NotRequired[list[NetworkInterface]]


class ZoneResponse(TypedDict):
    name: str
    region: str
    status: str


class FirewallResponse(TypedDict):
    name: str
    targetTags: NotRequired[list[str]]


class MetadataItem(TypedDict):
    key: str
    value: str


class InstanceBody(TypedDict):
    name: str
    description: str
    machineType: str
    disks: list[dict[str, Any]]
    networkInterfaces: list[NetworkInterface]
    labels: dict[str, str]
    tags: dict[str, list[str]]
    metadata: dict[str, list[MetadataItem]]


class FirewallBody(TypedDict):
    name: str
    direction: str
    priority: int
    targetTags: list[str]
    allowed: list[dict[str, Any]]
    sourceRanges: list[str]


class StaticIpBody(TypedDict):
    name: str
    description: str
    address: str


# ─── Resource Manager / Billing / Service Usage ──────────────────────


class ProjectResponse(TypedDict):
    projectId: str
    name: str
    lifecycleState: NotRequired[str]
    labels: NotRequired[dict[str, str]]


class ProjectBody(TypedDict):
    projectId: str
    name: str
    labels: dict[str, str]


class BillingInfoResponse(TypedDict):
    name: NotRequired[str]
    billingAccountName: NotRequired[str]
    billingEnabled: NotRequired[bool]


class BillingAccountResponse(TypedDict):
    name: str
    displayName: str
    open: bool


class ServiceConfig(TypedDict):
    name: str


class ServiceResponse(TypedDict):
    name: str
    config: ServiceConfig
    state: NotRequired[str]


class UserInfoResponse(TypedDict):
    email: str
    sub: NotRequired[str]
