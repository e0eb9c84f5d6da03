"""Email service interface and implementations."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from app.settings import settings

logger = logging.getLogger(__name__)


class EmailService(ABC):
    """Email service interface."""

    provider: str = "queue"

    @abstractmethod
    async def send(self, to_email: str, subject: str, html: Optional[str] = None) -> dict[str, Any]:
        """Send one email. Returns provider details for the caller's response."""
        pass


class ConsoleEmailService(EmailService):
    """No provider configured: the email is only logged."""

    provider = "queue"

    async def send(self, to_email: str, subject: str, html: Optional[str] = None) -> dict[str, Any]:
        logger.info("📧 [EMAIL] Queued (no provider): to=%s subject=%s", to_email, subject)
        return {
            "provider": self.provider,
            "message": "Email queued (no email provider configured). Set SENDGRID_API_KEY to enable.",
        }


class SendGridEmailService(EmailService):
    """SendGrid email service for production email sending."""

    provider = "sendgrid"

    def __init__(self, api_key: str, from_email: str, from_name: str):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    def _send_sync(self, to_email: str, subject: str, html: str) -> int:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Content, Email, Mail, To

        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", html),
        )
        response = SendGridAPIClient(self.api_key).send(message)
        return response.status_code

    async def send(self, to_email: str, subject: str, html: Optional[str] = None) -> dict[str, Any]:
        try:
            status = await asyncio.to_thread(self._send_sync, to_email, subject, html or subject)
        except Exception as e:
            logger.error("❌ [EMAIL] Error sending email to %s: %s", to_email, e)
            raise
        if status not in (200, 201, 202):
            logger.error("❌ [EMAIL] SendGrid returned status %s for %s", status, to_email)
            raise RuntimeError(f"SendGrid API returned status {status}")
        logger.info("✅ [EMAIL] Email sent to %s (status: %s)", to_email, status)
        return {"provider": self.provider, "status": status}


def get_email_service() -> EmailService:
    """Get the appropriate email service based on configuration."""
    if settings.sendgrid_api_key:
        return SendGridEmailService(
            api_key=settings.sendgrid_api_key,
            from_email=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    logger.warning("⚠️ [EMAIL] No SendGrid API key configured. Emails will only be logged.")
    return ConsoleEmailService()
