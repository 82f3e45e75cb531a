"""Services that orchestrate discovery."""

from newsfed.services.discovery_service import DiscoveryService, SyncResult

__all__ = ["DiscoveryService", "SyncResult"]
