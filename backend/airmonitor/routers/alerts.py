"""
Alerts Router

Handles air quality alerts:
- Alert queries and filtering
- Resolution workflow (single and bulk)
- Statistics
- Prolonged critical condition check
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ..dependencies.auth import CurrentUser, get_current_user, require_min_role
from ..services.alerts_service import SEVERITIES, alert_stats, check_prolonged_alerts
from ..services.supabase import get_supabase
from ..services.timestamp import utc_now

router = APIRouter()


# ============================================
# SCHEMAS
# ============================================

class AlertResponse(BaseModel):
    """Alert response."""
    id: str
    device_id: str
    device_name: Optional[str] = None
    sensor_type: str
    value: float
    threshold_value: Optional[float]
    severity: str
    message: Optional[str]
    is_resolved: bool
    resolved_by: Optional[str]
    resolved_at: Optional[str]
    created_at: Optional[str]


class AlertStats(BaseModel):
    total: int
    unresolved: int
    resolved: int
    by_severity: dict[str, int]


def row_to_alert_response(row: dict) -> AlertResponse:
    """Convert database row to AlertResponse."""
    device = row.get("devices") or {}
    return AlertResponse(
        id=str(row["id"]),
        device_id=str(row["device_id"]),
        device_name=device.get("name") if isinstance(device, dict) else None,
        sensor_type=row["sensor_type"],
        value=row["value"],
        threshold_value=row.get("threshold_value"),
        severity=row["severity"],
        message=row.get("message"),
        is_resolved=row.get("is_resolved", False),
        resolved_by=row.get("resolved_by"),
        resolved_at=row.get("resolved_at"),
        created_at=row.get("created_at"),
    )


def _check_severity(severity: Optional[str]):
    if severity and severity not in SEVERITIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid severity. Must be one of: {list(SEVERITIES)}"
        )


# ============================================
# ENDPOINTS - QUERIES
# ============================================

@router.get("/", response_model=list[AlertResponse])
async def list_alerts(
    device_id: Optional[UUID] = Query(None, description="Filter by device"),
    severity: Optional[str] = Query(None, description="Filter by severity"),
    sensor_type: Optional[str] = Query(None, description="Filter by sensor type"),
    is_resolved: Optional[bool] = Query(None, description="Filter by resolution status"),
    limit: int = Query(100, ge=1, le=1000),
    current_user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase)
):
    """
    List alerts, newest first.

    Supports filtering by device, severity, sensor type and resolution status.
    """
    _check_severity(severity)

    try:
        query = supabase.table("alerts").select("*, devices(name)")

        if device_id:
            query = query.eq("device_id", str(device_id))
        if severity:
            query = query.eq("severity", severity)
        if sensor_type:
            query = query.eq("sensor_type", sensor_type)
        if is_resolved is not None:
            query = query.eq("is_resolved", is_resolved)

        result = query.order("created_at", desc=True).limit(limit).execute()

        return [row_to_alert_response(row) for row in (result.data or [])]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch alerts: {str(e)}"
        )


# ============================================
# ENDPOINTS - STATISTICS
# ============================================

@router.get("/stats", response_model=AlertStats)
async def get_alert_stats(
    current_user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase)
):
    """Total, unresolved and per-severity counts."""
    try:
        result = supabase.table("alerts").select("severity, is_resolved").execute()
        return AlertStats(**alert_stats(result.data or []))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch alert stats: {str(e)}"
        )


# ============================================
# ENDPOINTS - RESOLUTION
# ============================================

@router.post("/resolve-all")
async def resolve_all_alerts(
    severity: Optional[str] = Query(None, description="Only resolve this severity"),
    current_user: CurrentUser = Depends(require_min_role("supervisor")),
    supabase=Depends(get_supabase)
):
    """
    Resolve all unresolved alerts.

    Optionally filter by severity level.
    """
    _check_severity(severity)

    try:
        query = supabase.table("alerts").select("id").eq("is_resolved", False)
        if severity:
            query = query.eq("severity", severity)

        count_result = query.execute()
        count = len(count_result.data) if count_result.data else 0

        if count == 0:
            return {
                "status": "resolved",
                "count": 0,
                "message": "No unresolved alerts found"
            }

        update_query = supabase.table("alerts").update({
            "is_resolved": True,
            "resolved_by": current_user.id,
            "resolved_at": utc_now().isoformat()
        }).eq("is_resolved", False)

        if severity:
            update_query = update_query.eq("severity", severity)

        update_query.execute()

        return {
            "status": "resolved",
            "count": count
        }
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to resolve alerts: {str(e)}"
        )


@router.post("/check-prolonged")
async def run_prolonged_check(
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase=Depends(get_supabase)
):
    """
    Check for sensors stuck at hazardous levels.

    Same check the background monitor runs; notifies staff and emails the
    configured admin/supervisor addresses.
    """
    try:
        return await check_prolonged_alerts(supabase)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check prolonged alerts: {str(e)}"
        )


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    supabase=Depends(get_supabase)
):
    try:
        result = supabase.table("alerts").select("*, devices(name)").eq("id", str(alert_id)).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Alert {alert_id} not found"
            )

        return row_to_alert_response(result.data[0])
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch alert: {str(e)}"
        )


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("supervisor")),
    supabase=Depends(get_supabase)
):
    """
    Mark an alert as resolved.

    Records who resolved it and when.
    """
    try:
        check_result = supabase.table("alerts").select("id, is_resolved").eq(
            "id", str(alert_id)
        ).execute()

        if not check_result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Alert {alert_id} not found"
            )

        # Check if already resolved
        if check_result.data[0].get("is_resolved"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Alert is already resolved"
            )

        result = supabase.table("alerts").update({
            "is_resolved": True,
            "resolved_by": current_user.id,
            "resolved_at": utc_now().isoformat()
        }).eq("id", str(alert_id)).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to resolve alert"
            )

        return row_to_alert_response(result.data[0])
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to resolve alert: {str(e)}"
        )
