"""
Geolocation backends (Strategy Pattern).
"""

from .strategies import GeoLookupStrategy, IpApiGeoLookup, StaticGeoLookup
from .factory import GeoLookupFactory, GeoBackend

__all__ = [
    "GeoLookupStrategy",
    "IpApiGeoLookup",
    "StaticGeoLookup",
    "GeoLookupFactory",
    "GeoBackend",
]
