"""
FastAPI dependencies for dependency injection.

Infrastructure singletons (cache, geolocation backend) are built once from
settings; services are built per request around the request's DB session.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from diagnostics_app.cache.factory import CacheFactory, CacheBackend
from diagnostics_app.cache.strategies import CacheStrategy
from diagnostics_app.config import settings
from diagnostics_app.database.connection import get_db
from diagnostics_app.geo.factory import GeoLookupFactory, GeoBackend
from diagnostics_app.geo.strategies import GeoLookupStrategy


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get cache instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once.
    """
    backend = CacheBackend(settings.cache_backend)
    return CacheFactory.create(backend)


@lru_cache()
def get_geo_lookup() -> GeoLookupStrategy:
    """Get the geolocation backend (singleton)."""
    backend = GeoBackend(settings.geo_backend)
    return GeoLookupFactory.create(backend)


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Caller identity from the X-User-Id header.

    There is no login flow; the header scopes reads and writes to one user.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required"
        )
    return x_user_id.strip()


def get_geo_service(
    lookup: GeoLookupStrategy = Depends(get_geo_lookup),
    cache: CacheStrategy = Depends(get_cache)
):
    from diagnostics_app.services.geo_service import GeoService
    return GeoService(lookup=lookup, cache=cache)


def get_alert_service(db: Session = Depends(get_db)):
    from diagnostics_app.services.alert_service import AlertService
    return AlertService(db=db)


def get_analysis_service(
    db: Session = Depends(get_db),
    geo=Depends(get_geo_service),
    alerts=Depends(get_alert_service)
):
    from diagnostics_app.services.analysis_service import AnalysisService
    return AnalysisService(db=db, geo=geo, alerts=alerts)


def get_tracking_service(
    db: Session = Depends(get_db),
    geo=Depends(get_geo_service),
    alerts=Depends(get_alert_service),
    cache: CacheStrategy = Depends(get_cache)
):
    """
    TrackingService with all dependencies injected.

    The same DB session is shared with the alert service so a visit and
    the alert it raises see the same data.
    """
    from diagnostics_app.services.tracking_service import TrackingService
    return TrackingService(db=db, geo=geo, alerts=alerts, cache=cache)


def get_program_service(db: Session = Depends(get_db), alerts=Depends(get_alert_service)):
    from diagnostics_app.services.program_service import ProgramService
    return ProgramService(db=db, alerts=alerts)


def get_performance_service(db: Session = Depends(get_db), alerts=Depends(get_alert_service)):
    from diagnostics_app.services.performance_service import PerformanceService
    return PerformanceService(db=db, alerts=alerts)
