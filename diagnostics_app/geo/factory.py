"""
Factory for the geolocation backend.
"""

import logging
from enum import Enum

from .strategies import GeoLookupStrategy, IpApiGeoLookup, StaticGeoLookup
from diagnostics_app.config import settings

logger = logging.getLogger(__name__)


class GeoBackend(Enum):
    """Available geolocation backends"""
    IP_API = "ip_api"
    STATIC = "static"


class GeoLookupFactory:
    """
    Creates the geolocation backend once and reuses it.
    Configuration comes from settings.
    """

    _instance: GeoLookupStrategy = None

    @classmethod
    def create(cls, backend: GeoBackend) -> GeoLookupStrategy:
        if cls._instance is not None:
            return cls._instance

        if backend == GeoBackend.IP_API:
            cls._instance = IpApiGeoLookup(
                api_url=settings.geo_api_url,
                fields=settings.geo_api_fields,
                timeout=settings.geo_timeout,
            )
            logger.info("ip-api geolocation backend at %s", settings.geo_api_url)
        elif backend == GeoBackend.STATIC:
            cls._instance = StaticGeoLookup()
            logger.info("Static geolocation backend initialized")
        else:
            raise ValueError(f"Unknown geo backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
