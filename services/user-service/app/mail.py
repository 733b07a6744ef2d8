"""Outbound email: SMTP transport, verification template and dispatch policies."""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from urllib.parse import urlencode

from .config import Settings
from .domain.contracts import Mailer
from .domain.errors import MailDeliveryFailed

logger = logging.getLogger(__name__)

APP_NAME = "Blog Platform"


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """A rendered message; ``reference`` names its account in logs in place of the address."""

    recipient: str
    subject: str
    html_body: str
    reference: str = ""


class MailerNotConfigured(RuntimeError):
    """Raised when a send is attempted without an SMTP relay."""


class SmtpMailer:
    """Deliver messages through an SMTP relay using ``smtplib``."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            settings.smtp_host,
            settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.mail_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._host)

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        if not self.is_configured:
            raise MailerNotConfigured("SMTP_HOST is not set")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"{APP_NAME}" <{self._sender}>'
        msg["To"] = recipient
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username:
                server.login(self._username, self._password)
            server.sendmail(self._sender, [recipient], msg.as_string())
        logger.info("email delivered via %s:%s", self._host, self._port)


def build_verification_url(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/verify-email?{urlencode({'token': token})}"


def render_verification_email(
    recipient: str, name: str, verification_url: str, ttl_minutes: int, *, reference: str = ""
) -> OutboundMessage:
    """Build the email-verification message sent after registration or on resend."""
    html_body = f"""\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1>Welcome to {APP_NAME}!</h1>
      <h2>Hi {escape(name)},</h2>
      <p>Thank you for registering! Please verify your email address to activate your account.</p>
      <p><strong>This link will expire in {ttl_minutes} minutes.</strong></p>
      <p><a href="{verification_url}">Verify Email Address</a></p>
      <p>Or copy and paste this link into your browser:</p>
      <p style="word-break: break-all;">{verification_url}</p>
      <p>If you didn't create an account, please ignore this email.</p>
    </div>
  </body>
</html>
"""
    return OutboundMessage(
        recipient=recipient,
        subject="Verify Your Email Address",
        html_body=html_body,
        reference=reference,
    )


class MailDispatcher:
    """Send mail through one transport with either a required or a best-effort policy."""

    def __init__(self, mailer: Mailer, *, timeout_seconds: float = 10.0, max_workers: int = 4) -> None:
        self._mailer = mailer
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mail")

    def send(self, message: OutboundMessage) -> None:
        """Deliver ``message`` within the timeout or raise ``MailDeliveryFailed``."""
        future = self._executor.submit(
            self._mailer.send, message.recipient, message.subject, message.html_body
        )
        try:
            future.result(timeout=self._timeout)
        except Exception as exc:
            logger.error("failed to send email for account %s: %s", message.reference, type(exc).__name__)
            raise MailDeliveryFailed() from exc

    def send_best_effort(self, message: OutboundMessage) -> Future:
        """Queue ``message`` without waiting; failures are logged and dropped."""
        future = self._executor.submit(
            self._mailer.send, message.recipient, message.subject, message.html_body
        )
        future.add_done_callback(lambda done: self._log_outcome(message.reference, done))
        return future

    def shutdown(self, *, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    @staticmethod
    def _log_outcome(reference: str, future: Future) -> None:
        if future.cancelled():
            logger.warning("email for account %s was cancelled before delivery", reference)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("best-effort email for account %s failed: %s", reference, type(exc).__name__)
