"""
Authentication Dependencies

Provides FastAPI dependencies for:
- JWT token validation
- Role-based access control
- Sensor gateway authentication (shared device secret)

Usage:
    from airmonitor.dependencies.auth import get_current_user, require_role

    @router.get("/")
    async def protected_route(user = Depends(get_current_user)):
        # User is authenticated
        pass

    @router.delete("/{id}")
    async def admin_only(user = Depends(require_role(["admin", "super_admin"]))):
        # Only admin or super_admin can access
        pass
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from ..services.supabase import Settings, get_settings, get_supabase

logger = logging.getLogger(__name__)

# Security scheme for JWT tokens
# This tells FastAPI to look for "Authorization: Bearer <token>" header
security = HTTPBearer(auto_error=False)


# ============================================
# USER MODEL
# ============================================

class CurrentUser(BaseModel):
    """
    Represents the authenticated user.

    Built from the Supabase Auth user and the matching profiles row.
    """
    id: str
    email: str
    role: str  # super_admin, admin, supervisor, viewer
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None


# ============================================
# ROLE HIERARCHY
# ============================================

# Higher roles inherit permissions from lower roles
ROLE_HIERARCHY = {
    "viewer": 1,
    "supervisor": 2,
    "admin": 3,
    "super_admin": 4
}

# Roles that receive operational notifications (alerts, offline devices)
NOTIFIED_ROLES = ["admin", "super_admin", "supervisor"]


# ============================================
# CORE AUTH DEPENDENCY
# ============================================

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    supabase = Depends(get_supabase)
) -> CurrentUser:
    """
    Validate JWT token and return the current user.

    How it works:
    1. Extract JWT token from Authorization header
    2. Verify token with Supabase Auth
    3. Get role and names from the profiles table
    4. Return CurrentUser object

    Raises:
        HTTPException 401: If no token or invalid token
        HTTPException 403: If profile missing or user is not active
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please provide a valid access token.",
            headers={"WWW-Authenticate": "Bearer"}
        )

    token = credentials.credentials

    try:
        auth_response = supabase.auth.get_user(token)

        if not auth_response or not auth_response.user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"}
            )

        auth_user_id = auth_response.user.id

        profile_result = supabase.table("profiles").select(
            "id, email, role, first_name, last_name, is_active"
        ).eq("id", str(auth_user_id)).execute()

        if not profile_result.data:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User profile not found. Please contact administrator."
            )

        profile = profile_result.data[0]

        if profile.get("is_active") is False:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your account has been deactivated. Please contact administrator."
            )

        return CurrentUser(
            id=profile["id"],
            email=profile["email"],
            role=profile.get("role") or "viewer",
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            is_active=profile.get("is_active", True) is not False
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    supabase = Depends(get_supabase)
) -> Optional[CurrentUser]:
    """
    Get current user if authenticated, None otherwise.

    Used by the mock-data endpoints, which are open for demos.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, supabase)
    except HTTPException:
        return None


# ============================================
# ROLE-BASED ACCESS CONTROL
# ============================================

def require_role(allowed_roles: list[str]):
    """
    Factory function that creates a dependency requiring specific roles.

    Args:
        allowed_roles: List of role names that can access the route

    Returns:
        Dependency function that validates the user's role
    """
    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(allowed_roles)}. Your role: {user.role}"
            )
        return user

    return role_checker


def require_min_role(min_role: str):
    """
    Factory function that creates a dependency requiring a minimum role level.

    Usage:
        @router.post("/{id}/resolve")
        async def resolve(user = Depends(require_min_role("supervisor"))):
            # supervisor, admin, and super_admin can access
            pass

    Args:
        min_role: Minimum role required (viewer < supervisor < admin < super_admin)

    Returns:
        Dependency function that validates the user's role level
    """
    min_level = ROLE_HIERARCHY.get(min_role, 0)

    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        user_level = ROLE_HIERARCHY.get(user.role, 0)

        if user_level < min_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Minimum required role: {min_role}. Your role: {user.role}"
            )
        return user

    return role_checker


# ============================================
# SENSOR GATEWAY AUTH
# ============================================

async def verify_device_secret(
    x_device_secret: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings)
) -> None:
    """
    Validate the shared secret sent by sensor gateways.

    An unconfigured DEVICE_SECRET rejects every request.
    """
    expected = settings.device_secret
    if not expected or not x_device_secret or not hmac.compare_digest(x_device_secret, expected):
        logger.warning("Rejected sensor payload: invalid or missing device secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
