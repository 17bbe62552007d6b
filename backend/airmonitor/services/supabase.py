"""
Supabase Service

Handles connection to Supabase for:
- Database operations (PostgreSQL)
- Authentication (Supabase Auth)

This is the main integration point with Supabase.
All routers and background tasks use this service for database access.
"""

import logging
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client
from pydantic_settings import BaseSettings

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Create a .env file with:
    - SUPABASE_URL=https://xxx.supabase.co
    - SUPABASE_SERVICE_KEY=your-service-role-key
    - DEVICE_SECRET=shared-secret-sent-by-sensor-gateways
    """
    supabase_url: str = ""
    supabase_service_key: str = ""

    # Sensor gateways authenticate with this header value
    device_secret: str = ""

    # Resend email delivery
    resend_api_key: str = ""
    resend_from_email: str = "Air Quality Monitor <alerts@example.org>"

    environment: str = "development"
    allowed_origins: str = ""

    # Campus-local time drives operating-hours splits in reports and occupancy
    campus_timezone: str = "Asia/Dubai"
    operating_hours_start: int = 8
    operating_hours_end: int = 18

    # Background monitors
    offline_threshold_minutes: int = 5
    health_check_interval_seconds: int = 60
    prolonged_alert_interval_seconds: int = 300
    reading_retention_days: int = 30
    background_tasks_enabled: bool = True

    mock_data_enabled: bool = False

    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def supabase_key(self) -> str:
        """Get the Supabase key (from SUPABASE_SERVICE_KEY env var)."""
        return self.supabase_service_key

    @property
    def origins(self) -> list[str]:
        """Allowed CORS origins parsed from the comma-separated env value."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()


class SupabaseService:
    """
    Supabase client wrapper.

    Creates the client lazily so the app can import without credentials.
    """

    def __init__(self):
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._client is None:
            settings = get_settings()
            if not settings.supabase_url or not settings.supabase_key:
                raise ConfigError(
                    "Supabase credentials not configured. "
                    "Set SUPABASE_URL and SUPABASE_SERVICE_KEY in .env file."
                )
            self._client = create_client(
                settings.supabase_url,
                settings.supabase_key
            )
        return self._client

    def is_connected(self) -> bool:
        """Check if Supabase connection is working."""
        try:
            self.client.table("sites").select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Supabase connectivity check failed: {e}")
            return False


# Singleton instance
supabase_service = SupabaseService()


def get_supabase() -> Client:
    """
    Dependency for getting Supabase client in routes.

    Usage:
        @router.get("/")
        async def my_route(db: Client = Depends(get_supabase)):
            result = db.table("devices").select("*").execute()
            return result.data
    """
    return supabase_service.client
