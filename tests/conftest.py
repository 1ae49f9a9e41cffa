"""
Test configuration and fixtures for the diagnostics center.
This centralizes all test setup, making individual tests clean.
"""

import os

# Never reach a real Redis or ip-api.com from tests
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("GEO_BACKEND", "static")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from diagnostics_app.cache.strategies import InMemoryCache
from diagnostics_app.database.connection import Base, enable_sqlite_foreign_keys, get_db
from diagnostics_app.dependencies import get_cache, get_geo_lookup
from diagnostics_app.geo.strategies import StaticGeoLookup
from diagnostics_app.services.alert_service import AlertService
from diagnostics_app.services.geo_service import GeoService
from diagnostics_app.services.tracking_service import TrackingService

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def geo_lookup():
    return StaticGeoLookup()


@pytest.fixture
def geo_service(geo_lookup, cache):
    return GeoService(lookup=geo_lookup, cache=cache)


@pytest.fixture
def alert_service(db_session):
    return AlertService(db=db_session)


@pytest.fixture
def tracking_service(db_session, geo_service, alert_service, cache):
    return TrackingService(db=db_session, geo=geo_service, alerts=alert_service, cache=cache)


@pytest.fixture(scope="function")
def client(db_session, cache, geo_lookup):
    """
    Create a test client with database, cache and geolocation overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_geo_lookup] = lambda: geo_lookup

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
