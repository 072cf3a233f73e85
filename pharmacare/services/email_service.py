"""Service for sending emails."""

import asyncio
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import unescape
from typing import Optional

from pharmacare.domain.exceptions import DeliveryError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html_body: str) -> str:
    """Rough plain-text alternative for an HTML body."""
    text = _TAG_RE.sub("\n", html_body)
    text = _BLANK_LINES_RE.sub("\n\n", unescape(text))
    return "\n".join(line.strip() for line in text.strip().splitlines())


class EmailService:
    """Service for sending emails via SMTP.

    When SMTP is not configured the service runs in development mode: the
    message is written to the log instead of being sent.
    """

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "PharmaCare",
        timeout: float = 30.0,
    ):
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.from_email = from_email or ""
        self.from_name = from_name
        self.timeout = timeout
        self.enabled = bool(self.smtp_host and self.from_email)

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Send an email.

        Args:
            to: Recipient email
            subject: Email subject
            html_body: HTML body

        Raises:
            DeliveryError: If the SMTP transaction fails
        """
        if not self.enabled:
            logger.info("[EMAIL] SMTP disabled; message for %s: %s\n%s", to, subject, html_to_text(html_body))
            return

        message = self._build_message(to, subject, html_body)
        await asyncio.to_thread(self._send_email, to, message)
        logger.info("Email sent successfully to %s", to)

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to

        part1 = MIMEText(html_to_text(html_body), "plain", "utf-8")
        part2 = MIMEText(html_body, "html", "utf-8")

        msg.attach(part1)
        msg.attach(part2)
        return msg

    def _send_email(self, to: str, msg: MIMEMultipart) -> None:
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.smtp_username:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("[EMAIL ERROR] Failed to send email to %s: %s", to, exc)
            raise DeliveryError(f"Failed to send email to {to}") from exc
