"""
Reports Router

Handles report generation:
- Summary report for a date range or the previous month
- Monthly report email to the supervisor
- Per-classroom performance reports and their consolidated summary
- CSV export of raw sensor readings
"""

import csv
import io
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from supabase import Client

from ..dependencies.auth import CurrentUser, get_current_user, require_min_role
from ..exceptions import ReportDataError
from ..services.alerts_service import get_email_settings
from ..services.email_service import send_email
from ..services.email_templates import format_report_email
from ..services.reports import (
    build_consolidated_summary,
    fetch_device_names,
    fetch_readings,
    generate_classroom_reports,
    generate_summary_report,
    previous_month_range,
)
from ..services.supabase import Settings, get_settings, get_supabase
from ..services.timestamp import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

# Classroom reports default to the last 30 days
DEFAULT_REPORT_DAYS = 30


# ============================================
# HELPER FUNCTIONS
# ============================================

def _resolve_range(start: Optional[datetime], end: Optional[datetime]) -> tuple[datetime, datetime]:
    end = parse_timestamp(end) if end else utc_now()
    start = parse_timestamp(start) if start else end - timedelta(days=DEFAULT_REPORT_DAYS)

    if start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must be before end"
        )
    return start, end


def _no_data(e: ReportDataError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=e.message
    )


# ============================================
# ENDPOINTS - SUMMARY REPORTS
# ============================================

@router.get("/summary")
async def get_summary_report(
    start: datetime = Query(..., description="Start time (required)"),
    end: datetime = Query(..., description="End time (required)"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    Summary report for a date range.

    Totals, average AQI, peak event, alert count and per-sensor statistics.
    """
    try:
        start, end = _resolve_range(start, end)
        return generate_summary_report(db, start, end)
    except ReportDataError as e:
        raise _no_data(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate report: {str(e)}"
        )


@router.get("/monthly")
async def get_monthly_report(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """Summary report for the previous calendar month."""
    try:
        start, end, label = previous_month_range()
        return generate_summary_report(db, start, end, label)
    except ReportDataError as e:
        raise _no_data(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate monthly report: {str(e)}"
        )


@router.post("/monthly/send")
async def send_monthly_report(
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Generate the previous month's report and email it to supervisor_email.
    """
    try:
        recipient = get_email_settings(db).get("supervisor_email")
        if not recipient:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No supervisor email configured"
            )

        start, end, label = previous_month_range()
        report = generate_summary_report(db, start, end, label)

        subject, html = format_report_email(report)
        result = await send_email(to=recipient, subject=subject, html=html)

        if result.get("error"):
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Failed to send report email: {result['error']}"
            )

        logger.info(f"Sent monthly report for {label} to {recipient}")
        return {
            "success": True,
            "recipient": recipient,
            "email_id": result.get("id"),
            "report": report,
        }
    except ReportDataError as e:
        raise _no_data(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send monthly report: {str(e)}"
        )


# ============================================
# ENDPOINTS - CLASSROOM REPORTS
# ============================================

@router.get("/classrooms")
async def get_classroom_reports(
    start: Optional[datetime] = Query(None, description="Defaults to 30 days ago"),
    end: Optional[datetime] = Query(None, description="Defaults to now"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings)
):
    """
    One report per device with readings in the range.

    Readings are split into operating and after hours in campus time.
    """
    try:
        start, end = _resolve_range(start, end)
        return generate_classroom_reports(
            db,
            start,
            end,
            settings.campus_timezone,
            settings.operating_hours_start,
            settings.operating_hours_end,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate classroom reports: {str(e)}"
        )


@router.get("/classrooms/summary")
async def get_classroom_summary(
    start: Optional[datetime] = Query(None, description="Defaults to 30 days ago"),
    end: Optional[datetime] = Query(None, description="Defaults to now"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase),
    settings: Settings = Depends(get_settings)
):
    """Consolidated campus summary across all classroom reports."""
    try:
        start, end = _resolve_range(start, end)
        classrooms = generate_classroom_reports(
            db,
            start,
            end,
            settings.campus_timezone,
            settings.operating_hours_start,
            settings.operating_hours_end,
        )
        return build_consolidated_summary(classrooms)
    except ReportDataError as e:
        raise _no_data(e)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate classroom summary: {str(e)}"
        )


# ============================================
# ENDPOINTS - EXPORT
# ============================================

@router.get("/export")
async def export_readings(
    start: datetime = Query(..., description="Start time (required)"),
    end: datetime = Query(..., description="End time (required)"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    Export sensor readings for a range as CSV.

    One row per reading, with the device name resolved.
    """
    try:
        start, end = _resolve_range(start, end)
        readings = fetch_readings(db, start, end)
        device_names = fetch_device_names(db)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to export readings: {str(e)}"
        )

    output = io.StringIO()
    fieldnames = ["timestamp", "device_id", "device_name", "sensor_type", "value", "unit"]
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()

    for row in readings:
        writer.writerow({
            "timestamp": row["timestamp"],
            "device_id": row["device_id"],
            "device_name": device_names.get(row["device_id"], ""),
            "sensor_type": row["sensor_type"],
            "value": row["value"],
            "unit": row.get("unit", ""),
        })

    filename = f"readings_{start.date()}_{end.date()}"

    return StreamingResponse(
        io.BytesIO(output.getvalue().encode()),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}.csv"'
        }
    )
