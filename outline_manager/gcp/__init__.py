"""Google Cloud control-plane access.

    from outline_manager.gcp import CloudApi, GcpApiClient
"""

from .client import Endpoints, GcpApiClient
from .protocols import CloudApi

__all__ = ["CloudApi", "Endpoints", "GcpApiClient"]
