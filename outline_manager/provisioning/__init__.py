"""Provisioning flows: projects, instances and what they depend on."""

from .addresses import IpPromoter, ephemeral_ip
from .firewall import FirewallManager
from .health import ProjectHealthChecker
from .instances import InstanceProvisioner, make_instance_name
from .poller import OperationPoller
from .projects import ProjectProvisioner

__all__ = [
    "FirewallManager",
    "InstanceProvisioner",
    "IpPromoter",
    "OperationPoller",
    "ProjectHealthChecker",
    "ProjectProvisioner",
    "ephemeral_ip",
    "make_instance_name",
]
