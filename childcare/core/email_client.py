# childcare/core/email_client.py
"""
Email client for invitation mails.

Responsibilities:
  - Take SMTP configuration from Settings.
  - Provide a single send_email(...) method for services to use.
  - Support both TLS (STARTTLS) and SSL connections.

Typical .env configuration (Gmail example with App Password):

    SMTP_HOST=smtp.gmail.com
    SMTP_PORT=465
    SMTP_USERNAME=office@littleeinsteinchildcare.org
    SMTP_PASSWORD=<app password>
    SMTP_FROM_NAME=Little Einstein Childcare
    SMTP_USE_TLS=false
    SMTP_USE_SSL=true
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from childcare.core.config import Settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> None:
        ...


class SmtpMailer:
    """
    Mailer that talks to an SMTP server.

    NOTE:
      - You should NOT enable both TLS and SSL at the same time.
      - Typical configs:
          * SSL: SMTP_PORT=465, SMTP_USE_SSL=true,  SMTP_USE_TLS=false
          * TLS: SMTP_PORT=587, SMTP_USE_SSL=false, SMTP_USE_TLS=true
    """

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        # Fallback: if FROM_EMAIL is not set, default to username
        self.from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME or ""
        self.from_name = settings.SMTP_FROM_NAME
        self.use_tls = settings.SMTP_USE_TLS
        self.use_ssl = settings.SMTP_USE_SSL

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _create_smtp_client(self) -> smtplib.SMTP:
        """
        Create and return an SMTP client configured for TLS or SSL.

        Priority:
          - If use_ssl → smtplib.SMTP_SSL (e.g., Gmail on 465).
          - Else → smtplib.SMTP + optional STARTTLS if use_tls.
        """
        if self.use_ssl:
            # Direct SSL connection (commonly port 465)
            server: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=30)
        else:
            # Plain connection, optionally upgraded via STARTTLS (commonly port 587)
            server = smtplib.SMTP(self.host, self.port, timeout=30)
            if self.use_tls:
                server.starttls()
        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> None:
        """
        Send an email to a single recipient.

        Raises:
            RuntimeError: if required SMTP configuration is missing.
            smtplib.SMTPException / OSError: if the connection or send fails.
        """
        if not self.configured:
            raise RuntimeError(
                "SMTP is not configured correctly. "
                "Please set SMTP_HOST, SMTP_USERNAME, and SMTP_PASSWORD in .env."
            )

        msg = EmailMessage()
        msg["From"] = (
            f"{self.from_name} <{self.from_email}>" if self.from_email else self.username
        )
        msg["To"] = to_email
        msg["Subject"] = subject

        # Always add a plain-text part
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        server = self._create_smtp_client()
        try:
            server.login(self.username, self.password)  # type: ignore[arg-type]
            server.send_message(msg)
        finally:
            try:
                server.quit()
            except smtplib.SMTPException as exc:
                # Connection is being torn down anyway.
                logger.debug("SMTP quit failed: %s", exc)

        logger.info("Email sent to %s", to_email)
