"""Notification Service for transactional email.

Booking and order emails go out through SendGrid. Callers wrap every send in
``best_effort`` so a failed email never undoes the write it reports on.
"""

import html
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from marketplace.config import settings
from marketplace.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationService:
    """Service for sending booking and purchase notifications."""

    def __init__(self) -> None:
        """Initialize notification service."""
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== EMAIL (SENDGRID) ====================

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body

        Returns:
            bool: True if SendGrid accepted the message, False if sending is disabled

        Raises:
            ExternalServiceError: SendGrid could not be reached or rejected the message
        """
        if not settings.sendgrid_api_key:
            logger.debug(f"Email to {to_email} skipped: SendGrid is not configured")
            return False

        headers = {
            "Authorization": f"Bearer {settings.sendgrid_api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {
                "email": settings.email_from_address,
                "name": settings.email_from_name,
            },
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        try:
            response = await self.http_client.post(SENDGRID_SEND_URL, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError("SendGrid", str(e))

        if response.status_code not in (200, 202):
            raise ExternalServiceError("SendGrid", f"HTTP {response.status_code}")
        return True

    def _generate_email_html(self, title: str, body: str, action_url: str | None) -> str:
        """Generate simple HTML email content.

        Every interpolated value is HTML-escaped.
        """
        title = html.escape(title)
        body = html.escape(body)
        button_html = ""
        if action_url:
            button_html = f"""
            <p style="margin-top: 24px;">
                <a href="{html.escape(action_url)}"
                   style="background-color: #4F46E5; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 6px; display: inline-block;">
                    View Details
                </a>
            </p>
            """

        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                     max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
            <div style="background-color: #f9fafb; border-radius: 8px; padding: 24px;">
                <h1 style="color: #111827; font-size: 24px; margin-bottom: 16px;">{title}</h1>
                <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">{body}</p>
                {button_html}
            </div>
            <p style="color: #9ca3af; font-size: 12px; margin-top: 24px; text-align: center;">
                &copy; {datetime.now(UTC).year} {settings.app_name}. All rights reserved.
            </p>
        </body>
        </html>
        """

    # ==================== SPECIFIC NOTIFICATION HELPERS ====================

    async def notify_booking_requested(
        self,
        client_email: str,
        provider_email: str | None,
        booking_reference: str,
        listing_title: str,
        project_title: str,
    ) -> None:
        """Confirm the request to the client and alert the provider."""
        tracking_url = f"{settings.public_base_url}/bookings/{booking_reference}"

        await self.send_email(
            to_email=client_email,
            subject=f"Booking request received ({booking_reference})",
            html_content=self._generate_email_html(
                "Booking Request Received",
                f'Your request for "{listing_title}" has been sent to the provider. '
                f"Your booking reference is {booking_reference}.",
                tracking_url,
            ),
            text_content=f"Booking reference: {booking_reference}. Track it at {tracking_url}",
        )

        if provider_email:
            await self.send_email(
                to_email=provider_email,
                subject=f"New booking request: {project_title}",
                html_content=self._generate_email_html(
                    "New Booking Request",
                    f'You have a new request for "{listing_title}": {project_title}. '
                    f"Booking #{booking_reference}",
                    tracking_url,
                ),
            )

    async def notify_purchase_created(
        self,
        buyer_email: str,
        tracking_id: str,
        listing_title: str,
        quantity: int,
        total_amount: str,
        currency: str,
    ) -> None:
        """Send the order confirmation with the tracking link."""
        tracking_url = f"{settings.public_base_url}/orders/{tracking_id}"
        await self.send_email(
            to_email=buyer_email,
            subject=f"Order confirmed ({tracking_id})",
            html_content=self._generate_email_html(
                "Order Confirmed",
                f"Thank you for your order of {quantity} x {listing_title} "
                f"({currency} {total_amount}). Your tracking ID is {tracking_id}.",
                tracking_url,
            ),
            text_content=f"Tracking ID: {tracking_id}. Track it at {tracking_url}",
        )


# Singleton instance
notification_service = NotificationService()
