"""
Notification Dispatcher
=======================

Best-effort carnival emails over SMTP (aiosmtplib).

- Never raises: delivery failures and timeouts are logged as warnings.
- The send timeout is enforced here, so callers never block on mail delivery.
- When SMTP is not configured the message is logged and skipped.
"""

import asyncio
import logging
from email.message import EmailMessage
from typing import Optional

import aiosmtplib

from carnivals.config import Settings, settings as default_settings
from carnivals.schemas import CarnivalRead, ClaimantInfo

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends ownership and registration notifications."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _build_message(self, to_email: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.smtp_from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)
        return msg

    async def _deliver(self, msg: EmailMessage) -> None:
        port = int(self.settings.smtp_port)
        # 587 is STARTTLS, 465 is implicit TLS
        start_tls = bool(self.settings.smtp_tls) and port == 587
        use_tls = bool(self.settings.smtp_tls) and port == 465
        await aiosmtplib.send(
            msg,
            hostname=self.settings.smtp_host,
            port=port,
            username=self.settings.smtp_user,
            password=self.settings.smtp_password,
            start_tls=start_tls,
            use_tls=use_tls,
        )

    async def send(self, to_email: Optional[str], subject: str, body: str) -> bool:
        """Send one email. Returns True if the relay accepted it."""
        if not to_email:
            logger.debug(f"No recipient for notification '{subject}', skipping")
            return False

        if not self.settings.smtp_configured:
            logger.info(f"SMTP not configured, skipping email '{subject}' to {to_email}")
            return False

        msg = self._build_message(to_email, subject, body)
        try:
            await asyncio.wait_for(
                self._deliver(msg),
                timeout=self.settings.notification_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Timed out after {self.settings.notification_timeout_seconds}s "
                f"sending '{subject}' to {to_email}"
            )
            return False
        except Exception as e:
            logger.warning(f"Failed to send '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to_email}")
        return True

    # -------------------------------------------------------------------------
    # Carnival notifications
    # -------------------------------------------------------------------------

    async def notify_claim(
        self,
        carnival: CarnivalRead,
        claimant: ClaimantInfo,
        original_contact_email: Optional[str],
    ) -> bool:
        """Tell the imported organiser contact that a club has claimed their event."""
        subject = f'Carnival claimed: "{carnival.title}"'
        body = (
            f"Hello,\n\n"
            f'The carnival "{carnival.title}" listed under your contact details '
            f"has been claimed by {claimant.club_name}.\n"
            f"It is now managed by {claimant.user_name}.\n\n"
            f"If you believe this is a mistake, please contact an administrator.\n"
        )
        return await self.send(original_contact_email, subject, body)

    async def notify_approval(
        self,
        carnival: CarnivalRead,
        club_email: Optional[str],
        club_name: str,
        approver_name: str,
    ) -> bool:
        subject = f'Registration approved: "{carnival.title}"'
        body = (
            f"Hello {club_name},\n\n"
            f'Your registration for "{carnival.title}" has been approved by {approver_name}.\n'
        )
        return await self.send(club_email, subject, body)

    async def notify_rejection(
        self,
        carnival: CarnivalRead,
        club_email: Optional[str],
        club_name: str,
        approver_name: str,
        reason: str,
    ) -> bool:
        subject = f'Registration not approved: "{carnival.title}"'
        body = (
            f"Hello {club_name},\n\n"
            f'Your registration for "{carnival.title}" was not approved by {approver_name}.\n'
            f"Reason: {reason}\n"
        )
        return await self.send(club_email, subject, body)


dispatcher = NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    """Dependency returning the process-wide dispatcher."""
    return dispatcher
