import smtplib
import logging
from email.mime.text import MIMEText
from email.utils import formataddr
from datetime import datetime, timezone

from vnum_api.core.config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    """Simple SMTP email service for Virtual Number account notifications"""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_USERNAME and self.settings.SMTP_PASSWORD)

    def build_reset_link(self, token: str) -> str:
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"

    def send_password_reset_email(self, to_email: str, reset_link: str) -> bool:
        """Send the password reset link in plain text"""
        subject = "Password Reset Request"
        brand = self.settings.EMAIL_FROM_NAME

        content = f"""
            Password Reset Request

            Hello,

            We received a request to reset your password for your {brand} account.

            Click this link to reset your password:
            {reset_link}

            This link will expire in 1 hour. If you didn't request this password reset, please ignore this email.

            {datetime.now(timezone.utc).year} © {brand}. All rights reserved.
        """

        return self._send_email(to_email, "", subject, content)

    def send_password_change_notification(self, to_email: str, to_name: str) -> bool:
        """Send password change confirmation email"""
        brand = self.settings.EMAIL_FROM_NAME
        subject = f"{brand} - Password Changed"

        content = f"""
            Hello {to_name},

            Your {brand} account password has been changed successfully.

            Change details:
            - Time: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}
            - Action: Password update

            If you did not make this change, reset your password immediately and contact support.

            {datetime.now(timezone.utc).year} © {brand}. All rights reserved.
        """

        return self._send_email(to_email, to_name, subject, content)

    def _send_email(self, to_email: str, to_name: str, subject: str, content: str) -> bool:
        """Send plain text email via SMTP. Returns False instead of raising."""
        if not self.is_configured:
            logger.warning("SMTP credentials not configured. Email not sent.")
            return False

        try:
            msg = MIMEText(content, 'plain', 'utf-8')
            msg['Subject'] = subject
            msg['From'] = formataddr((self.settings.EMAIL_FROM_NAME, self.settings.EMAIL_FROM))
            msg['To'] = formataddr((to_name, to_email))

            with smtplib.SMTP(self.settings.SMTP_SERVER, self.settings.SMTP_PORT) as server:
                if self.settings.SMTP_PORT == 587:
                    server.starttls()

                server.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
                server.send_message(msg)

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False
