"""
Settings Router

Handles system configuration stored in the database:
- Email settings (alert recipients, prolonged-alert window)
- Air quality thresholds per sensor type
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, TypeAdapter, ValidationError, model_validator
from supabase import Client

from ..dependencies.auth import CurrentUser, get_current_user, require_min_role
from ..services.supabase import get_supabase

router = APIRouter()


# ============================================
# EMAIL SETTING KEYS
# ============================================

EMAIL_SETTING_KEYS = {
    "admin_email": "Recipient for prolonged alert emails",
    "supervisor_email": "Recipient for alert emails and the monthly report",
    "alert_threshold_hours": "Hours a sensor must stay hazardous before escalation",
}

EMAIL_VALUE_KEYS = ("admin_email", "supervisor_email")

THRESHOLD_BANDS = (
    "good_max",
    "moderate_max",
    "unhealthy_sensitive_max",
    "unhealthy_max",
    "very_unhealthy_max",
    "hazardous_min",
)

_email_adapter = TypeAdapter(EmailStr)


# ============================================
# SCHEMAS
# ============================================

class EmailSettingUpdate(BaseModel):
    setting_value: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=500)


class ThresholdUpsert(BaseModel):
    """
    Air quality bands for one sensor type.

    Bands must be non-decreasing; unset bands are skipped.
    """
    good_max: Optional[float] = None
    moderate_max: Optional[float] = None
    unhealthy_sensitive_max: Optional[float] = None
    unhealthy_max: Optional[float] = None
    very_unhealthy_max: Optional[float] = None
    hazardous_min: Optional[float] = None
    unit: Optional[str] = Field(None, max_length=20)
    region: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_band_order(self):
        previous_name, previous_value = None, None
        for band in THRESHOLD_BANDS:
            value = getattr(self, band)
            if value is None:
                continue
            if previous_value is not None and value < previous_value:
                raise ValueError(f"{band} ({value}) must not be below {previous_name} ({previous_value})")
            previous_name, previous_value = band, value
        return self


# ============================================
# HELPER FUNCTIONS
# ============================================

def validate_setting_value(key: str, value: str) -> str:
    """
    Check a value against its key's format.

    Raises:
        HTTPException 400: If the key is unknown or the value malformed
    """
    if key not in EMAIL_SETTING_KEYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown setting: {key}. Valid settings: {', '.join(EMAIL_SETTING_KEYS)}"
        )

    value = value.strip()

    if key in EMAIL_VALUE_KEYS:
        try:
            return str(_email_adapter.validate_python(value))
        except ValidationError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid email address for {key}"
            )

    if key == "alert_threshold_hours":
        try:
            hours = float(value)
        except ValueError:
            hours = 0
        if hours <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="alert_threshold_hours must be a positive number"
            )

    return value


# ============================================
# ENDPOINTS - EMAIL SETTINGS
# ============================================

@router.get("/email")
async def list_email_settings(
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        result = db.table("email_settings").select("*").order("setting_key").execute()
        return result.data or []
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch email settings: {str(e)}"
        )


@router.put("/email/{setting_key}")
async def upsert_email_setting(
    setting_key: str,
    body: EmailSettingUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Create or replace one email setting.

    Email keys must hold a valid address; alert_threshold_hours a positive number.
    """
    value = validate_setting_value(setting_key, body.setting_value)

    row = {
        "setting_key": setting_key,
        "setting_value": value,
        "description": body.description or EMAIL_SETTING_KEYS[setting_key],
    }

    try:
        existing = db.table("email_settings").select("id").eq("setting_key", setting_key).execute()
        if existing.data:
            result = db.table("email_settings").update(row).eq("setting_key", setting_key).execute()
        else:
            result = db.table("email_settings").insert(row).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save email setting"
            )
        return result.data[0]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save email setting: {str(e)}"
        )


@router.delete("/email/{setting_key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_email_setting(
    setting_key: str,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        existing = db.table("email_settings").select("id").eq("setting_key", setting_key).execute()
        if not existing.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Setting {setting_key} not found"
            )
        db.table("email_settings").delete().eq("setting_key", setting_key).execute()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete email setting: {str(e)}"
        )


# ============================================
# ENDPOINTS - THRESHOLDS
# ============================================

@router.get("/thresholds")
async def list_thresholds(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        result = db.table("air_quality_thresholds").select("*").order("sensor_type").execute()
        return result.data or []
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch thresholds: {str(e)}"
        )


@router.put("/thresholds/{sensor_type}")
async def upsert_threshold(
    sensor_type: str,
    body: ThresholdUpsert,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Create or update the bands for a sensor type.

    On update only the fields sent are changed; the merged bands must
    still be in order.
    """
    try:
        existing = db.table("air_quality_thresholds").select("*").eq("sensor_type", sensor_type).execute()

        if existing.data:
            update_data = body.model_dump(exclude_unset=True)
            merged = {**existing.data[0], **update_data}
            # Re-check ordering against the stored bands
            try:
                ThresholdUpsert(**{k: merged.get(k) for k in ThresholdUpsert.model_fields})
            except ValidationError as e:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=e.errors()[0]["msg"]
                )
            if not update_data:
                return existing.data[0]
            result = db.table("air_quality_thresholds").update(update_data).eq("sensor_type", sensor_type).execute()
        else:
            result = db.table("air_quality_thresholds").insert({
                "sensor_type": sensor_type,
                **body.model_dump(),
            }).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to save threshold"
            )
        return result.data[0]
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save threshold: {str(e)}"
        )
