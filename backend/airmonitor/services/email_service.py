"""
Email Service - Resend API Integration

Sends transactional emails (alert escalations, monthly reports) via the
Resend REST API using httpx.
"""

import logging

import httpx

from .supabase import get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


async def send_email(to: str | list[str], subject: str, html: str) -> dict:
    """
    Send an email via Resend API.

    Args:
        to: Recipient email address (or list of addresses)
        subject: Email subject line
        html: HTML email body

    Returns:
        dict with "id" on success, or "error" on failure
        Success: {"id": "resend-id-here"}
        Failure: {"error": "422: detailed error message"}
    """
    settings = get_settings()
    recipients = [to] if isinstance(to, str) else list(to)

    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set, skipping email")
        return {"error": "RESEND_API_KEY not configured"}

    if not recipients:
        return {"error": "No recipients"}

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": settings.resend_from_email,
                    "to": recipients,
                    "subject": subject,
                    "html": html,
                },
                timeout=10.0,
            )
            response.raise_for_status()
            result = response.json()
            logger.info(f"Sent email to {', '.join(recipients)}: {subject} (id: {result.get('id')})")
            return result
    except httpx.HTTPStatusError as e:
        error_detail = f"{e.response.status_code}: {e.response.text}"
        logger.error(f"HTTP error sending email to {recipients}: {error_detail}")
        return {"error": error_detail}
    except Exception as e:
        error_detail = f"Connection error: {e}"
        logger.error(f"Error sending email to {recipients}: {error_detail}")
        return {"error": error_detail}
