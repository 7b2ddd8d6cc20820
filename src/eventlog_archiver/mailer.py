"""Email delivery for run reports.

Sends the HTML report through the SMTP relay configured by SMTP_* environment
variables. Delivery failures are logged and reported as False; they never
abort a run.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from .config import MailSettings

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Deliver HTML bodies over SMTP."""

    def __init__(self, settings: Optional[MailSettings] = None):
        self.settings = settings or MailSettings()

    def build_message(self, body: str, subject: str, recipient: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.sender
        msg["To"] = recipient
        msg.attach(MIMEText("This report requires an HTML-capable mail client.", "plain"))
        msg.attach(MIMEText(body, "html"))
        return msg

    def deliver(self, body: str, subject: str, recipient: str) -> bool:
        """Send body as an HTML email.

        Args:
            body: HTML document
            subject: Email subject
            recipient: Recipient address, or several separated by commas

        Returns:
            True if email sent successfully, False otherwise
        """
        recipients = [addr.strip() for addr in recipient.split(",") if addr.strip()]
        if not recipients:
            logger.warning("No valid recipient - skipping report email")
            return False

        try:
            msg = self.build_message(body, subject, ", ".join(recipients))

            with smtplib.SMTP(self.settings.host, self.settings.port) as server:
                if self.settings.starttls:
                    server.starttls(context=ssl.create_default_context())
                if self.settings.requires_login:
                    server.login(self.settings.user, self.settings.password)
                server.sendmail(self.settings.sender, recipients, msg.as_string())

            logger.info(f"Report email sent to {', '.join(recipients)}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send report email to {recipient}: {e}")
            return False
