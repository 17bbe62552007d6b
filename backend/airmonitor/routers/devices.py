"""
Devices Router

Handles air-quality sensor management:
- Device CRUD (name, placement, hardware details, status)
- Quick rename and floor allocation for auto-registered devices
- Pending devices (still carrying their auto-generated name)
- On-demand health check
"""

import re
from datetime import date
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from supabase import Client

from ..dependencies.auth import CurrentUser, get_current_user, require_min_role
from ..services.health_monitor import run_health_check
from ..services.ingest import AUTO_DEVICE_TYPE
from ..services.supabase import Settings, get_settings, get_supabase
from ..services.timestamp import utc_now

router = APIRouter()

DeviceStatus = Literal["online", "offline", "maintenance", "error"]

# "Device A1B2C3" / "Device 4F:5E:" - name given on auto-registration
PENDING_NAME_PATTERN = re.compile(r"^Device [0-9A-Fa-f:]{6}$")


# ============================================
# SCHEMAS
# ============================================

class DeviceCreate(BaseModel):
    """Create device request."""
    name: str = Field(..., min_length=1, max_length=100)
    floor_id: UUID
    device_type: str = AUTO_DEVICE_TYPE
    status: DeviceStatus = "offline"
    mac_address: Optional[str] = Field(None, max_length=17)
    serial_number: Optional[str] = Field(None, max_length=100)
    firmware_version: Optional[str] = Field(None, max_length=50)
    installation_date: Optional[date] = None
    calibration_due_date: Optional[date] = None
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    signal_strength: Optional[int] = Field(None, ge=-120, le=0)  # dBm


class DeviceUpdate(BaseModel):
    """Update device request. All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    floor_id: Optional[UUID] = None
    device_type: Optional[str] = None
    status: Optional[DeviceStatus] = None
    mac_address: Optional[str] = Field(None, max_length=17)
    serial_number: Optional[str] = Field(None, max_length=100)
    firmware_version: Optional[str] = Field(None, max_length=50)
    installation_date: Optional[date] = None
    calibration_due_date: Optional[date] = None
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    signal_strength: Optional[int] = Field(None, ge=-120, le=0)


class DeviceRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class DeviceAllocate(BaseModel):
    """Move a device to a floor, optionally renaming it."""
    floor_id: UUID
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class DeviceResponse(BaseModel):
    """Device response."""
    id: str
    name: str
    floor_id: Optional[str]
    device_type: Optional[str]
    status: str
    mac_address: Optional[str]
    serial_number: Optional[str]
    firmware_version: Optional[str]
    installation_date: Optional[str]
    calibration_due_date: Optional[str]
    battery_level: Optional[int]
    signal_strength: Optional[int]
    created_at: Optional[str]
    updated_at: Optional[str]


# ============================================
# HELPER FUNCTIONS
# ============================================

def db_row_to_device_response(row: dict) -> DeviceResponse:
    """Convert database row to DeviceResponse."""
    return DeviceResponse(
        id=str(row["id"]),
        name=row.get("name") or "",
        floor_id=str(row["floor_id"]) if row.get("floor_id") else None,
        device_type=row.get("device_type"),
        status=row.get("status") or "offline",
        mac_address=row.get("mac_address"),
        serial_number=row.get("serial_number"),
        firmware_version=row.get("firmware_version"),
        installation_date=str(row["installation_date"]) if row.get("installation_date") else None,
        calibration_due_date=str(row["calibration_due_date"]) if row.get("calibration_due_date") else None,
        battery_level=row.get("battery_level"),
        signal_strength=row.get("signal_strength"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def is_pending_name(name: Optional[str]) -> bool:
    """True when the device still carries its auto-registration name."""
    if not name:
        return False
    return bool(PENDING_NAME_PATTERN.match(name))


def _to_db(data: dict) -> dict:
    converted = {}
    for key, value in data.items():
        if isinstance(value, UUID):
            value = str(value)
        elif isinstance(value, date):
            value = value.isoformat()
        converted[key] = value
    return converted


def _get_device(db: Client, device_id: str) -> dict:
    result = db.table("devices").select("*").eq("id", device_id).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {device_id} not found"
        )
    return result.data[0]


def _require_floor(db: Client, floor_id: UUID):
    result = db.table("floors").select("id").eq("id", str(floor_id)).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Floor {floor_id} not found"
        )


def _apply_update(db: Client, device_id: str, update_data: dict) -> DeviceResponse:
    update_data = _to_db(update_data)
    update_data["updated_at"] = utc_now().isoformat()

    result = db.table("devices").update(update_data).eq("id", device_id).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update device"
        )
    return db_row_to_device_response(result.data[0])


# ============================================
# ENDPOINTS - LISTING
# ============================================

@router.get("/", response_model=list[DeviceResponse])
async def list_devices(
    status_filter: Optional[DeviceStatus] = Query(None, alias="status", description="Filter by status"),
    floor_id: Optional[UUID] = Query(None, description="Filter by floor"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """List devices ordered by name."""
    try:
        query = db.table("devices").select("*")
        if status_filter:
            query = query.eq("status", status_filter)
        if floor_id:
            query = query.eq("floor_id", str(floor_id))

        result = query.order("name").range(skip, skip + limit - 1).execute()
        return [db_row_to_device_response(row) for row in result.data]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch devices: {str(e)}"
        )


@router.get("/pending", response_model=list[DeviceResponse])
async def list_pending_devices(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    List auto-registered devices waiting to be named and placed.

    These still carry the "Device XXXXXX" name given on first contact.
    """
    try:
        result = db.table("devices").select("*").order("created_at", desc=True).execute()
        return [
            db_row_to_device_response(row)
            for row in result.data
            if is_pending_name(row.get("name"))
        ]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch pending devices: {str(e)}"
        )


# ============================================
# ENDPOINTS - HEALTH
# ============================================

@router.post("/health-check")
async def health_check(
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings)
):
    """
    Run one device health check now.

    Same cycle the background monitor runs every minute.
    """
    try:
        return run_health_check(db, settings.offline_threshold_minutes)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to run health check: {str(e)}"
        )


# ============================================
# ENDPOINTS - CRUD
# ============================================

@router.post("/", response_model=DeviceResponse, status_code=status.HTTP_201_CREATED)
async def create_device(
    device: DeviceCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """Register a device. Admin or higher."""
    try:
        _require_floor(db, device.floor_id)

        if device.mac_address:
            existing = db.table("devices").select("id").eq("mac_address", device.mac_address).execute()
            if existing.data:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"A device with MAC address {device.mac_address} already exists"
                )

        result = db.table("devices").insert(_to_db(device.model_dump())).execute()
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create device"
            )

        return db_row_to_device_response(result.data[0])
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create device: {str(e)}"
        )


@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(
    device_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return db_row_to_device_response(_get_device(db, str(device_id)))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch device: {str(e)}"
        )


@router.patch("/{device_id}", response_model=DeviceResponse)
async def update_device(
    device_id: UUID,
    update: DeviceUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        existing = _get_device(db, str(device_id))

        update_data = update.model_dump(exclude_unset=True)
        if not update_data:
            # Nothing to update
            return db_row_to_device_response(existing)

        if update.floor_id is not None:
            _require_floor(db, update.floor_id)

        return _apply_update(db, str(device_id), update_data)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update device: {str(e)}"
        )


@router.patch("/{device_id}/name", response_model=DeviceResponse)
async def rename_device(
    device_id: UUID,
    body: DeviceRename,
    current_user: CurrentUser = Depends(require_min_role("supervisor")),
    db: Client = Depends(get_supabase)
):
    """Quick rename from the device list."""
    try:
        _get_device(db, str(device_id))
        return _apply_update(db, str(device_id), {"name": body.name.strip()})
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to rename device: {str(e)}"
        )


@router.post("/{device_id}/allocate", response_model=DeviceResponse)
async def allocate_device(
    device_id: UUID,
    body: DeviceAllocate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Place a device on a floor.

    Used to move auto-registered devices off the default floor.
    """
    try:
        _get_device(db, str(device_id))
        _require_floor(db, body.floor_id)

        update_data = {"floor_id": body.floor_id}
        if body.name:
            update_data["name"] = body.name.strip()

        return _apply_update(db, str(device_id), update_data)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to allocate device: {str(e)}"
        )


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(
    device_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Delete a device.

    Readings and alerts cascade in the database.
    """
    try:
        _get_device(db, str(device_id))
        db.table("devices").delete().eq("id", str(device_id)).execute()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete device: {str(e)}"
        )
