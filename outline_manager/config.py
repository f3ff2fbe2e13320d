"""TOML-based account configuration.

Loads ~/.outline/defaults.toml (global) and outline.toml (project), merges
them, and builds the immutable ``GcpConfig`` handed to the provisioners.

Example ``outline.toml``::

    [gcp]
    machine_type = "e2-micro"
    operation_timeout = 900
    failure_policy = "delete"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Literal

type RawConfig = dict[str, Any]
type FailurePolicy = Literal["keep", "delete"]

GLOBAL_CONFIG_PATH = Path.home() / ".outline" / "defaults.toml"
PROJECT_CONFIG_NAME = "outline.toml"


@dataclass(frozen=True, slots=True)
class GcpConfig:
    """Static configuration for provisioning Outline servers on GCP.

    Args:
        project_display_name: Display name given to created projects.
        label_key: Label set to ``"true"`` on every project and instance we manage.
        firewall_name: Name of the ingress firewall rule.
        firewall_tag: Network tag the firewall rule targets; set on every instance.
        machine_type: Compute Engine machine type for new servers.
        source_image: Boot disk image.
        network: VPC network of the instance's only interface.
        required_services: Service ids a healthy project has enabled.
        install_script: Opaque payload run by the instance at first boot.
        poll_interval: Seconds between operation polls.
        operation_timeout: Deadline for a single polled operation. None waits forever.
        failure_policy: What to do with a VM whose provisioning failed after
            creation: ``"keep"`` leaves it for the operator, ``"delete"`` removes it.
        client_id: OAuth client id used for the refresh-token grant.
        client_secret: OAuth client secret used for the refresh-token grant.
        request_timeout: Per-request HTTP timeout in seconds.
    """

    project_display_name: str = "Outline servers"
    label_key: str = "outline"
    firewall_name: str = "outline"
    firewall_tag: str = "outline"
    machine_type: str = "f1-micro"
    source_image: str = "projects/ubuntu-os-cloud/global/images/family/ubuntu-1804-lts"
    network: str = "global/networks/default"
    required_services: tuple[str, ...] = ("compute.googleapis.com",)
    install_script: str = ""
    poll_interval: float = 2.0
    operation_timeout: float | None = 600.0
    failure_policy: FailurePolicy = "keep"
    client_id: str = ""
    client_secret: str = ""
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.failure_policy not in ("keep", "delete"):
            raise ValueError(
                f"Invalid failure_policy '{self.failure_policy}'. Valid: keep, delete"
            )
        if self.poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")

    @property
    def label_filter(self) -> str:
        return f"labels.{self.label_key}=true"

    @classmethod
    def from_dict(cls, raw: RawConfig) -> GcpConfig:
        known = {f.name for f in fields(cls)}
        if unknown := sorted(set(raw) - known):
            raise ValueError(f"Unknown gcp config keys: {', '.join(unknown)}")
        values = dict(raw)
        if "required_services" in values:
            values["required_services"] = tuple(values["required_services"])
        if values.get("operation_timeout") == 0:
            values["operation_timeout"] = None
        return cls(**values)

    @classmethod
    def from_toml(
        cls,
        *,
        project_dir: Path | None = None,
        global_path: Path | None = None,
    ) -> GcpConfig:
        config = load_config(project_dir=project_dir, global_path=global_path)
        return cls.from_dict(config["gcp"])


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("gcp", {})
    return merged
