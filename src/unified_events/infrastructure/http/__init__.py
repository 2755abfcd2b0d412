"""HTTP infrastructure shared by provider adapters and geocoders."""

from unified_events.infrastructure.http.client import BaseAPIClient

__all__ = ["BaseAPIClient"]
