import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from diagnostics_app.config import settings
from diagnostics_app.database.connection import engine, Base
from diagnostics_app.exceptions import DiagnosticsError
from diagnostics_app.api.v1 import alerts, analysis, ip_proxy, performance, programs, track, tracking

# Import models to ensure they're registered with Base
import diagnostics_app.models  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("diagnostics_app")

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="IP geolocation, threat scoring, visitor tracking and local diagnostics",
    debug=settings.debug
)


@app.exception_handler(DiagnosticsError)
async def diagnostics_error_handler(request: Request, exc: DiagnosticsError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(ip_proxy.router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1")
app.include_router(tracking.router, prefix="/api/v1")
app.include_router(programs.router, prefix="/api/v1")
app.include_router(performance.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")
app.include_router(track.router)
