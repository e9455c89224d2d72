"""SendGrid notification dispatch for onboarding emails.

Delivery is fire-and-forget relative to the request that triggered it: the
dispatcher schedules a background task, retries failed sends with
exponential backoff, and logs the final failure. Nothing here ever raises
into the provisioning or setup flow.

Uses asyncio.to_thread to wrap the synchronous SendGrid client.
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import sendgrid
from sendgrid.helpers.mail import Email, HtmlContent, Mail, To

from merchant_onboarding.app.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    html_body: str
    kind: str = "generic"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _wrap(title: str, body: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="en">
<body style="margin: 0; padding: 0; background-color: #f3f4f6; font-family: Arial, sans-serif;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px; background-color: #ffffff;">
        <div style="background-color: #2e7d32; padding: 24px; border-radius: 8px; text-align: center;">
            <h1 style="color: #ffffff; margin: 0; font-size: 24px;">{title}</h1>
        </div>
        {body}
    </div>
</body>
</html>
"""


def welcome_message(email: str, business_name: str, setup_url: str, login_url: str) -> EmailMessage:
    """Welcome email carrying the one-time setup link."""
    ttl = get_settings().setup_token_ttl_hours
    name = html.escape(business_name)
    body = f"""
        <p style="font-size: 16px; color: #1f2937;">Hello {name},</p>
        <p style="font-size: 15px; color: #4b5563; line-height: 1.6;">
            Your merchant account has been created. Use the link below to choose your own
            password and finish setting up your business profile.
        </p>
        <p style="text-align: center; margin: 28px 0;">
            <a href="{setup_url}" style="background-color: #2196f3; color: #ffffff; padding: 14px 32px;
               text-decoration: none; border-radius: 8px; font-weight: bold;">Complete Setup</a>
        </p>
        <p style="font-size: 13px; color: #6b7280;">
            This link can be used once and expires in {ttl} hours.
            Afterwards you can sign in at <a href="{login_url}">{login_url}</a>.
        </p>
        <p style="font-size: 13px; color: #6b7280;">
            To get verified, upload your Business Registration, ID Document and Utility Bill
            from your dashboard.
        </p>
    """
    return EmailMessage(
        to=email,
        subject="Welcome - your merchant account is ready",
        html_body=_wrap("Welcome aboard!", body),
        kind="welcome",
    )


def setup_complete_message(email: str, business_name: str, dashboard_url: str) -> EmailMessage:
    name = html.escape(business_name)
    body = f"""
        <p style="font-size: 16px; color: #1f2937;">Congratulations {name}!</p>
        <p style="font-size: 15px; color: #4b5563; line-height: 1.6;">
            Your account setup is complete. You can now manage your business profile.
        </p>
        <p style="text-align: center; margin: 28px 0;">
            <a href="{dashboard_url}" style="background-color: #4caf50; color: #ffffff; padding: 14px 32px;
               text-decoration: none; border-radius: 8px; font-weight: bold;">Go to Dashboard</a>
        </p>
    """
    return EmailMessage(
        to=email,
        subject="Account setup complete",
        html_body=_wrap("Setup complete", body),
        kind="setup_complete",
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def _get_client() -> sendgrid.SendGridAPIClient:
    """Return a configured SendGrid API client."""
    return sendgrid.SendGridAPIClient(api_key=get_settings().sendgrid_api_key)


def _send_mail(mail: Mail) -> bool:
    """Synchronous send via SendGrid. Returns True on success."""
    client = _get_client()
    response = client.send(mail)
    if response.status_code in (200, 201, 202):
        return True
    logger.error(
        "SendGrid returned status %s: %s",
        response.status_code,
        response.body,
    )
    return False


async def send_email(message: EmailMessage) -> bool:
    """Send one message via SendGrid. Returns True on success, False otherwise."""
    settings = get_settings()
    mail = Mail(
        from_email=Email(settings.email_from, settings.email_from_name),
        to_emails=To(message.to),
        subject=message.subject,
        html_content=HtmlContent(message.html_body),
    )
    return await asyncio.to_thread(_send_mail, mail)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

Sender = Callable[[EmailMessage], Awaitable[bool]]


class NotificationDispatcher:
    """Schedules email delivery in the background with bounded retries."""

    def __init__(
        self,
        sender: Sender | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ):
        settings = get_settings()
        self._sender = sender
        self.max_retries = settings.notification_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.notification_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        # Hold references to background tasks so they don't get garbage collected
        self._tasks: set[asyncio.Task] = set()

    @property
    def configured(self) -> bool:
        return self._sender is not None or bool(get_settings().sendgrid_api_key)

    async def deliver(self, message: EmailMessage) -> bool:
        """Send with retries (1s, 2s, 4s ... backoff). Never raises."""
        if not self.configured:
            logger.warning("SENDGRID_API_KEY not set, skipping %s email to %s", message.kind, message.to)
            return False

        sender = self._sender or send_email
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                if await sender(message):
                    logger.info("%s email sent to %s", message.kind, message.to)
                    return True
                error = "sender reported failure"
            except Exception as e:
                error = str(e)

            if attempt < attempts - 1:
                wait = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "%s email to %s failed (attempt %d/%d): %s, retrying in %.1fs",
                    message.kind, message.to, attempt + 1, attempts, error, wait,
                )
                await asyncio.sleep(wait)
            else:
                logger.error(
                    "%s email to %s failed after %d attempts: %s",
                    message.kind, message.to, attempts, error,
                )
        return False

    def dispatch(self, message: EmailMessage) -> asyncio.Task:
        """Schedule delivery and return immediately."""
        task = asyncio.create_task(self.deliver(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_dispatcher: NotificationDispatcher | None = None


def get_notifier() -> NotificationDispatcher:
    """FastAPI dependency: process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher
