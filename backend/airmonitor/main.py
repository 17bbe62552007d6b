"""
Campus Air Quality Monitor - Backend API

FastAPI application that provides:
- Location hierarchy management (sites, buildings, blocks, floors, rooms)
- Device management and sensor ingestion
- Live and historical air quality data
- Alert management and prolonged-alert escalation
- Summary and classroom reports
- User and settings administration

This API connects to Supabase (PostgreSQL) for data storage.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .logging_setup import setup_logging
from .middleware.audit import AuditLoggingMiddleware
from .routers import alerts, devices, locations, mock, readings, reports, settings, users
from .services.monitor import start_monitors, stop_monitors
from .services.supabase import get_settings, supabase_service

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# ============================================
# ENVIRONMENT CONFIGURATION
# ============================================

config = get_settings()

# In production, set ALLOWED_ORIGINS as comma-separated list
# Example: ALLOWED_ORIGINS=https://air.campus.edu,https://www.air.campus.edu
ALLOWED_ORIGINS = config.origins

# Default origins for development
if config.environment == "development" or not ALLOWED_ORIGINS:
    ALLOWED_ORIGINS.extend([
        "http://localhost:5173",      # Vite dev server
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ])


# ============================================
# APPLICATION LIFESPAN
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup and shutdown events.

    Startup:
    - Configure logging
    - Start the device health and prolonged-alert monitors

    Shutdown:
    - Cancel the monitors
    """
    app_config = get_settings()
    setup_logging("api", app_config.log_level, json_format=app_config.log_format == "json")

    logger.info(f"Starting Air Quality Monitor API ({app_config.environment})")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")

    if app_config.background_tasks_enabled:
        await start_monitors()

    yield

    await stop_monitors()
    logger.info("Shutting down API")


# ============================================
# CREATE APPLICATION
# ============================================

app = FastAPI(
    title="Campus Air Quality Monitor API",
    description="""
    API for monitoring indoor air quality across university and hospital campuses.

    ## Features
    - **Locations**: Sites, buildings, blocks, floors and rooms
    - **Devices**: Sensor registration, placement and health
    - **Readings**: Gateway ingestion, live snapshots, history and dashboard
    - **Alerts**: Threshold alerts, resolution and prolonged-condition escalation
    - **Reports**: Monthly summaries, classroom performance and CSV export
    - **Settings**: Alert recipients and air quality thresholds

    ## Sensors
    PM0.3 to PM10, particle counts, CO2, temperature, humidity, VOC, NOx and HCHO.
    """,
    version=API_VERSION,
    lifespan=lifespan,
)


# ============================================
# MIDDLEWARE
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Writes every modifying /api/ request to audit_logs
app.add_middleware(AuditLoggingMiddleware)


# ============================================
# INCLUDE ROUTERS
# ============================================

app.include_router(
    locations.router,
    prefix="/api/locations",
    tags=["Locations"]
)

app.include_router(
    devices.router,
    prefix="/api/devices",
    tags=["Devices"]
)

# Gateway ingestion plus live/historical data
app.include_router(
    readings.router,
    prefix="/api/readings",
    tags=["Readings"]
)

app.include_router(
    alerts.router,
    prefix="/api/alerts",
    tags=["Alerts"]
)

app.include_router(
    reports.router,
    prefix="/api/reports",
    tags=["Reports"]
)

app.include_router(
    settings.router,
    prefix="/api/settings",
    tags=["Settings"]
)

app.include_router(
    users.router,
    prefix="/api/users",
    tags=["Users"]
)

app.include_router(
    mock.router,
    prefix="/api/mock",
    tags=["Mock Data"]
)


# ============================================
# ROOT ENDPOINT
# ============================================

@app.get("/", tags=["Health"])
async def root():
    """
    Basic API information.
    """
    return {
        "name": "Campus Air Quality Monitor API",
        "version": API_VERSION,
        "status": "running",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Detailed health check.

    Checks:
    - API is running
    - Database connection
    """
    connected = supabase_service.is_connected()
    return {
        "status": "healthy" if connected else "degraded",
        "database": "connected" if connected else "disconnected",
        "version": API_VERSION
    }
