"""
Users Router

Handles staff accounts.
Uses Supabase Auth for credentials and the profiles table for role data.

Roles:
- super_admin: Full access, can create and promote any user
- admin: Can manage supervisors and viewers, configure locations and devices
- supervisor: Can resolve alerts and rename devices
- viewer: Read-only dashboards and reports
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from ..dependencies.auth import (
    CurrentUser,
    get_current_user,
    require_min_role,
)
from ..services.supabase import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter()

Role = Literal["viewer", "supervisor", "admin", "super_admin"]

# Only super_admin may hand these out
PRIVILEGED_ROLES = ("admin", "super_admin")

PROFILE_COLUMNS = "id, email, first_name, last_name, role, is_active, department, phone, created_at"


# ============================================
# SCHEMAS
# ============================================

class UserCreate(BaseModel):
    """Create user request."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role = "viewer"
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class UserUpdate(BaseModel):
    """Update user request."""
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class PasswordReset(BaseModel):
    password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    """User response (no password)."""
    id: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    department: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None


def row_to_user_response(row: dict) -> UserResponse:
    return UserResponse(
        id=str(row["id"]),
        email=row["email"],
        role=row.get("role") or "viewer",
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        is_active=row.get("is_active", True) is not False,
        department=row.get("department"),
        phone=row.get("phone"),
        created_at=row.get("created_at"),
    )


def _check_can_assign(current_user: CurrentUser, role: str):
    if role in PRIVILEGED_ROLES and current_user.role != "super_admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only super admins can assign the admin or super_admin role"
        )


def _get_profile(supabase, user_id: str) -> dict:
    result = supabase.table("profiles").select(PROFILE_COLUMNS).eq("id", user_id).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return result.data[0]


# ============================================
# ENDPOINTS
# ============================================

@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user)
):
    """
    Get current authenticated user.

    Use this to get the current user's role and profile.
    """
    return UserResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        is_active=current_user.is_active
    )


@router.get("/", response_model=list[UserResponse])
async def list_users(
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    """List all staff profiles, newest first."""
    try:
        result = supabase.table("profiles").select(PROFILE_COLUMNS).order(
            "created_at", desc=True
        ).execute()
        return [row_to_user_response(row) for row in (result.data or [])]
    except Exception as e:
        logger.error(f"List users error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve users: {str(e)}"
        )


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    """
    Create a new user.

    How it works:
    1. Check the creator may hand out the requested role
    2. Create the account in Supabase Auth
    3. Create the profile row (the auth account is removed if this fails)
    """
    _check_can_assign(current_user, user.role)

    try:
        auth_response = supabase.auth.admin.create_user({
            "email": user.email,
            "password": user.password,
            "email_confirm": True
        })

        if not auth_response.user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed to create user in authentication system"
            )

        new_user_id = str(auth_response.user.id)

        profile = {
            "id": new_user_id,
            "email": user.email,
            "role": user.role,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "department": user.department,
            "phone": user.phone,
            "is_active": True,
        }

        try:
            result = supabase.table("profiles").insert(profile).execute()
        except Exception as e:
            logger.error(f"Profile insert failed for {user.email}: {e}")
            result = None

        if not result or not result.data:
            # Rollback: delete the auth user if profile creation fails
            try:
                supabase.auth.admin.delete_user(new_user_id)
            except Exception as e:
                logger.warning(f"Failed to roll back auth user {new_user_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create user profile"
            )

        logger.info(f"User {user.email} created with role {user.role} by {current_user.email}")
        return row_to_user_response(result.data[0])

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Create user error: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to create user: {str(e)}"
        )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    try:
        return row_to_user_response(_get_profile(supabase, user_id))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve user: {str(e)}"
        )


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    """
    Update a user's role, active flag or contact details.

    Admins cannot promote to admin/super_admin or edit users who already
    hold those roles.
    """
    try:
        target = _get_profile(supabase, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve user: {str(e)}"
        )

    if target.get("role") in PRIVILEGED_ROLES:
        _check_can_assign(current_user, target["role"])

    update_data = user_update.model_dump(exclude_unset=True)

    if "role" in update_data:
        _check_can_assign(current_user, update_data["role"])

    if user_id == current_user.id and update_data.get("is_active") is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate your own account"
        )

    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )

    try:
        result = supabase.table("profiles").update(update_data).eq("id", user_id).execute()

        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        return row_to_user_response(result.data[0])

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Update user error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update user: {str(e)}"
        )


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: str,
    body: PasswordReset,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    """Set a new password for a user."""
    try:
        target = _get_profile(supabase, user_id)
        if target.get("role") in PRIVILEGED_ROLES:
            _check_can_assign(current_user, target["role"])

        supabase.auth.admin.update_user_by_id(user_id, {"password": body.password})
        logger.info(f"Password reset for {target['email']} by {current_user.email}")
        return {"message": "Password updated successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Reset password error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reset password: {str(e)}"
        )


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    supabase = Depends(get_supabase)
):
    """
    Delete a user.

    Deletes both the profile and the auth account.
    Consider deactivation (is_active=False) to keep the audit trail readable.
    """
    # Prevent self-deletion
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    try:
        target = _get_profile(supabase, user_id)
        if target.get("role") in PRIVILEGED_ROLES:
            _check_can_assign(current_user, target["role"])

        supabase.table("profiles").delete().eq("id", user_id).execute()

        try:
            supabase.auth.admin.delete_user(user_id)
        except Exception as e:
            # The profile is gone; the auth account can be cleaned up manually
            logger.warning(f"Failed to delete auth user {user_id}: {e}")

        return {"message": "User deleted successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Delete user error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete user: {str(e)}"
        )
