"""Transactional email over the Resend HTTP API."""

from datetime import date
from decimal import Decimal
from html import escape
from typing import Optional

import httpx
from pydantic import BaseModel

from src.logging import get_logger

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailMessage(BaseModel):
    """Rendered email content."""

    subject: str
    text: str
    html: str


def contract_expiry_email(business_name: str, days_left: int) -> EmailMessage:
    return EmailMessage(
        subject=f"Contract Expiry Notice - {business_name}",
        text=(
            f"Your contract for {business_name} will expire in {days_left} days. "
            "Please renew it to continue operating your business."
        ),
        html=(
            "<h2>Contract Expiry Notice</h2>"
            f"<p>Your contract for <strong>{escape(business_name)}</strong> will expire in "
            f"{days_left} days.</p>"
            "<p>Please log in to your account to renew your contract and avoid any "
            "business interruptions.</p>"
            "<p>If you have any questions, please contact support.</p>"
        ),
    )


def contract_expired_email(business_name: str) -> EmailMessage:
    return EmailMessage(
        subject=f"Contract Expired - {business_name}",
        text=(
            f"Your contract for {business_name} has expired. "
            "Please pay the contract fee to renew it."
        ),
        html=(
            "<h2>Contract Expired</h2>"
            f"<p>Your contract for <strong>{escape(business_name)}</strong> has expired.</p>"
            "<p>Please log in to your account to pay the contract fee and renew it.</p>"
        ),
    )


def rent_reminder_email(business_name: str, amount: Decimal, due_date: date) -> EmailMessage:
    due = due_date.strftime("%d/%m/%Y")
    return EmailMessage(
        subject=f"Rent Payment Reminder - {business_name}",
        text=f"Your rent payment of {amount} for {business_name} is due on {due}.",
        html=(
            "<h2>Rent Payment Reminder</h2>"
            "<p>This is a reminder that your rent payment for "
            f"<strong>{escape(business_name)}</strong> is due soon.</p>"
            f"<p>Amount: {amount}</p>"
            f"<p>Due Date: {due}</p>"
            "<p>Please log in to your account to make the payment.</p>"
        ),
    )


def rent_overdue_email(business_name: str, amount: Decimal, days_overdue: int) -> EmailMessage:
    return EmailMessage(
        subject=f"Rent Payment Overdue - {business_name}",
        text=f"Your rent payment of {amount} for {business_name} is {days_overdue} days overdue.",
        html=(
            "<h2>Rent Payment Overdue Notice</h2>"
            f"<p>Your rent payment for <strong>{escape(business_name)}</strong> is now "
            f"{days_overdue} days overdue.</p>"
            f"<p>Outstanding Amount: {amount}</p>"
            "<p>Please log in to your account immediately to make the payment and "
            "avoid any penalties.</p>"
        ),
    )


class EmailDeliveryError(Exception):
    """Resend refused the message or could not be reached."""


class ResendEmailService:
    """Send email through Resend. Failures raise; nothing is retried."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = RESEND_API_URL,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def send(self, to_email: str, message: EmailMessage) -> None:
        """
        Send one email.

        Raises:
            EmailDeliveryError: Network failure or an error status from Resend
        """
        payload = {
            "from": self.from_email,
            "to": [to_email],
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = await self.client.post(self.api_url, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error("email_network_error", subject=message.subject, error=str(e))
            raise EmailDeliveryError(f"Email sending failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "email_send_failed",
                subject=message.subject,
                status_code=response.status_code,
            )
            raise EmailDeliveryError(f"Email sending failed: {response.text}")

        logger.info("email_sent", subject=message.subject)
