"""
Readings Router

Handles sensor data:
- Ingestion from sensor gateways (device secret, not user JWT)
- Live snapshot per device
- Bucketed history per device
- Campus dashboard summary
"""

import logging
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from supabase import Client

from ..dependencies.auth import CurrentUser, get_current_user, verify_device_secret
from ..exceptions import IngestError
from ..services.ingest import ingest_payload
from ..services.live_data import (
    HISTORY_PERIODS,
    fetch_device_snapshot,
    get_dashboard,
    get_history,
    get_live_snapshots,
)
from ..services.supabase import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# SCHEMAS
# ============================================

class SensorPayload(BaseModel):
    """
    Payload posted by a sensor gateway.

    Every sensor value is optional; only the ones present are stored.
    """
    model_config = ConfigDict(extra="ignore")

    device_id: Optional[UUID] = None
    mac_address: Optional[str] = Field(None, max_length=17)
    timestamp: Optional[str] = None

    # Particulate mass (µg/m³)
    pm03: Optional[float] = None
    pm05: Optional[float] = None
    pm1: Optional[float] = None
    pm25: Optional[float] = None
    pm5: Optional[float] = None
    pm10: Optional[float] = None

    # Gases and climate
    co2: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    voc: Optional[float] = None
    nox: Optional[float] = None
    hcho: Optional[float] = None

    # Particle counts
    pc03: Optional[float] = None
    pc05: Optional[float] = None
    pc1: Optional[float] = None
    pc25: Optional[float] = None
    pc5: Optional[float] = None

    aqi_overall: Optional[float] = None
    dominant_pollutant: Optional[str] = Field(None, max_length=20)

    @model_validator(mode="after")
    def check_identity(self):
        if self.device_id is None and not self.mac_address:
            raise ValueError("Either device_id or mac_address is required")
        return self


class IngestResponse(BaseModel):
    success: bool
    device_id: str
    auto_registered: bool
    readings_processed: int
    alerts_created: int


# ============================================
# ENDPOINTS - INGESTION
# ============================================

@router.post("/ingest", response_model=IngestResponse, dependencies=[Depends(verify_device_secret)])
async def ingest_readings(
    payload: SensorPayload,
    db: Client = Depends(get_supabase)
):
    """
    Store one payload from a sensor gateway.

    Authenticated with the X-Device-Secret header. Unknown devices are
    auto-registered on the first floor found.
    """
    try:
        data = payload.model_dump(exclude_none=True)
        if "device_id" in data:
            data["device_id"] = str(data["device_id"])
        return ingest_payload(db, data)
    except IngestError as e:
        logger.warning(f"Rejected sensor payload: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.message
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Sensor ingestion failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to ingest readings: {str(e)}"
        )


# ============================================
# ENDPOINTS - LIVE DATA
# ============================================

@router.get("/live")
async def get_live_readings(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    Latest value of every sensor type for each device.

    Includes the PM2.5 AQI, overall AQI, dominant pollutant and category.
    """
    try:
        return get_live_snapshots(db)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch live readings: {str(e)}"
        )


@router.get("/live/{device_id}")
async def get_device_live_reading(
    device_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        result = db.table("devices").select(
            "id, name, status, floor_id"
        ).eq("id", str(device_id)).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Device {device_id} not found"
            )

        return fetch_device_snapshot(db, result.data[0])
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch live reading: {str(e)}"
        )


@router.get("/history/{device_id}")
async def get_device_history(
    device_id: UUID,
    period: Literal["1h", "24h", "7d", "30d"] = Query("24h", description="Time window"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    Bucketed history for one device.

    Bucket sizes: 1h → 5 min, 24h → 1 hour, 7d → 6 hours, 30d → 1 day.
    """
    try:
        if period not in HISTORY_PERIODS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid period: {period}"
            )
        return get_history(db, str(device_id), period)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch history: {str(e)}"
        )


@router.get("/dashboard")
async def get_dashboard_summary(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """Campus summary: device counts, active alerts, average and worst AQI."""
    try:
        return get_dashboard(db)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch dashboard: {str(e)}"
        )
