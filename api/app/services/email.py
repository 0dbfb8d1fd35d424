"""Email sending via SMTP."""

import logging
from collections.abc import Awaitable
from email.message import EmailMessage

import aiosmtplib

from app.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email via SMTP."""
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    await aiosmtplib.send(message, hostname=settings.smtp_host, port=settings.smtp_port)


async def send_quietly(send: Awaitable[None], to: str) -> None:
    """Await a send, logging SMTP failures instead of raising them.

    Used once the state change the mail reports on is already committed.
    """
    try:
        await send
    except (aiosmtplib.SMTPException, OSError):
        logger.warning("Could not send email to %s", to, exc_info=True)


async def send_password_reset_email(to: str, token: str) -> None:
    """Send the password reset email with the reset link."""
    link = f"{settings.frontend_url}/reset-password?token={token}"
    body = (
        f"Hello,\n\n"
        f"A password reset was requested for your Courtly account.\n\n"
        f"Set a new password here:\n"
        f"{link}\n\n"
        f"This link expires in {settings.password_reset_expire_minutes} minutes.\n\n"
        f"If you didn't request this, you can ignore this email.\n\n"
        f"Courtly"
    )
    await send_email(to, "Reset your Courtly password", body)
    logger.info("Password reset email sent to %s", to)


async def send_verification_email(to: str, token: str) -> None:
    link = f"{settings.frontend_url}/verify-email?token={token}"
    body = (
        f"Welcome to Courtly!\n\n"
        f"Confirm your email address to register clubs and join them:\n"
        f"{link}\n\n"
        f"Courtly"
    )
    await send_email(to, "Confirm your Courtly email", body)
    logger.info("Verification email sent to %s", to)


async def send_club_approved_email(to: str, submitter_name: str, club_name: str, club_slug: str) -> None:
    link = f"{settings.frontend_url}/club/{club_slug}"
    body = (
        f"Hi {submitter_name},\n\n"
        f"Good news: {club_name} has been approved and is now listed on Courtly.\n\n"
        f"You are the club's owner. Manage it here:\n"
        f"{link}\n\n"
        f"Courtly"
    )
    await send_email(to, f"{club_name} is live on Courtly", body)
    logger.info("Club approval email sent to %s", to)


async def send_club_declined_email(to: str, submitter_name: str, club_name: str, reason: str | None = None) -> None:
    body = f"Hi {submitter_name},\n\nYour registration for {club_name} was not approved.\n\n"
    if reason:
        body += f"Reason: {reason}\n\n"
    body += "You are welcome to submit a new registration with updated details.\n\nCourtly"
    await send_email(to, f"Your Courtly registration for {club_name}", body)
    logger.info("Club decline email sent to %s", to)
