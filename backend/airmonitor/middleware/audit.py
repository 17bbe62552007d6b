"""
Audit Logging Middleware

Logs all modifying requests (POST, PATCH, PUT, DELETE) under /api/ to the
audit_logs table. Captures user, action, table, record ID, and status.
"""

import base64
import json
import logging
from typing import Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..services.supabase import supabase_service

logger = logging.getLogger(__name__)


# Path prefixes to exclude
EXCLUDED_PREFIXES = [
    "/api/readings/ingest",  # Sensor traffic, one write per payload
    "/api/mock",
]

# HTTP methods to log (only modifying operations)
LOGGED_METHODS = ["POST", "PATCH", "PUT", "DELETE"]

# URL segments → database table
TABLE_MAP = {
    "sites": "sites",
    "buildings": "buildings",
    "blocks": "blocks",
    "floors": "floors",
    "rooms": "rooms",
    "devices": "devices",
    "alerts": "alerts",
    "readings": "sensor_readings",
    "reports": "reports",
    "email": "email_settings",
    "thresholds": "air_quality_thresholds",
    "users": "profiles",
}

# Routers whose second segment names the table (/api/locations/buildings/...)
NESTED_ROUTERS = ("locations", "settings")


def _looks_like_id(segment: str) -> bool:
    """UUIDs are 36 chars with four dashes."""
    return len(segment) == 36 and segment.count("-") == 4


def parse_resource_from_path(path: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Parse table name and record ID from URL path.

    Examples:
    - /api/devices/<uuid>/name → ("devices", "<uuid>")
    - /api/locations/floors/<uuid> → ("floors", "<uuid>")
    - /api/settings/email/admin_email → ("email_settings", "admin_email")
    - /api/alerts/resolve-all → ("alerts", None)

    Returns:
        Tuple of (table_name, record_id) - ID may be None
    """
    if not path.startswith("/api/"):
        return (None, None)

    parts = [p for p in path[5:].split("/") if p]
    if not parts:
        return (None, None)

    if parts[0] in NESTED_ROUTERS and len(parts) > 1:
        parts = parts[1:]
        # Settings keys are natural ids
        if parts[0] == "email" and len(parts) > 1:
            return (TABLE_MAP["email"], parts[1])

    table_name = TABLE_MAP.get(parts[0], parts[0])

    record_id = None
    if len(parts) > 1 and _looks_like_id(parts[1]):
        record_id = parts[1]

    return (table_name, record_id)


def method_to_action(method: str) -> str:
    """Convert HTTP method to action name."""
    mapping = {
        "POST": "create",
        "PATCH": "update",
        "PUT": "update",
        "DELETE": "delete",
    }
    return mapping.get(method, method.lower())


def extract_user_id_from_token(auth_header: Optional[str]) -> Optional[str]:
    """
    Extract user ID ('sub') from the JWT in the Authorization header.

    Decoded without verification; routes do the real authentication.
    """
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    parts = auth_header[7:].split(".")
    if len(parts) != 3:
        return None

    payload_b64 = parts[1]
    padding = 4 - (len(payload_b64) % 4)
    if padding != 4:
        payload_b64 += "=" * padding

    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None

    return payload.get("sub") if isinstance(payload, dict) else None


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs modifying HTTP requests to audit_logs table.

    Only logs POST, PATCH, PUT, DELETE requests under /api/.
    Never fails the request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if request.method not in LOGGED_METHODS or not path.startswith("/api/"):
            return await call_next(request)

        for prefix in EXCLUDED_PREFIXES:
            if path.startswith(prefix):
                return await call_next(request)

        # Execute the request first
        response = await call_next(request)

        # Now log the action (after we know the status code)
        try:
            self._log_action(request, response)
        except Exception as e:
            logger.warning(f"Error writing audit log for {request.method} {path}: {e}")

        return response

    def _log_action(self, request: Request, response: Response):
        path = request.url.path
        method = request.method

        table_name, record_id = parse_resource_from_path(path)
        if not table_name:
            return

        user_agent = request.headers.get("user-agent", "")

        audit_entry = {
            "action": method_to_action(method),
            "table_name": table_name,
            "record_id": record_id,
            "user_id": extract_user_id_from_token(request.headers.get("authorization")),
            "ip_address": request.client.host if request.client else None,
            "user_agent": user_agent[:500] if user_agent else None,
            "new_values": {
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "status": "success" if 200 <= response.status_code < 400 else "failed",
            }
        }

        supabase_service.client.table("audit_logs").insert(audit_entry).execute()
