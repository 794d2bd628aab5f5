"""
Notification delivery service.
Sends alert and report notifications by SMTP email or JSON webhook.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from config.settings import get_settings


class NotificationChannel(str, Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"


class NotificationDeliveryService:
    """Dispatches notifications over the configured delivery channels."""

    def __init__(self) -> None:
        self.settings = get_settings()

    def send(
        self,
        channel: NotificationChannel,
        recipient: str,
        subject: str,
        body: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Send one notification.

        For email the recipient is an address; for webhooks it is the URL and
        ``payload`` (plus subject and body) is posted as JSON.
        """
        if not self.settings.notifications_enabled:
            raise RuntimeError("Notification transport is disabled by configuration")

        channel = NotificationChannel(channel)
        if channel == NotificationChannel.EMAIL:
            self._send_email(recipient=recipient, subject=subject, body=body)
            return f"Email sent to {recipient}"

        data = {"subject": subject, "message": body}
        if payload:
            data.update(payload)
        self._post_webhook(url=recipient, payload=data)
        return f"Webhook delivered to {recipient}"

    def _send_email(self, recipient: str, subject: str, body: str) -> None:
        smtp_host = (self.settings.smtp_host or "").strip()
        smtp_username = (self.settings.smtp_username or "").strip()
        smtp_password = (self.settings.smtp_password or "").strip()
        from_email = (self.settings.smtp_from_email or "").strip()

        if not recipient or "@" not in recipient:
            raise RuntimeError(f"Invalid email recipient: {recipient!r}")
        if not smtp_host:
            raise RuntimeError("SMTP host is not configured (STOCKMANAGER_SMTP_HOST)")
        if not from_email:
            raise RuntimeError("SMTP from address is not configured (STOCKMANAGER_SMTP_FROM_EMAIL)")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = from_email
        message["To"] = recipient
        message.set_content(body)

        timeout = max(1, int(self.settings.smtp_timeout_seconds))
        port = int(self.settings.smtp_port)
        use_ssl = bool(self.settings.smtp_use_ssl)

        smtp_client: Optional[smtplib.SMTP] = None
        try:
            if use_ssl:
                smtp_client = smtplib.SMTP_SSL(smtp_host, port, timeout=timeout)
            else:
                smtp_client = smtplib.SMTP(smtp_host, port, timeout=timeout)
            smtp_client.ehlo()
            if not use_ssl and self.settings.smtp_use_tls:
                smtp_client.starttls()
                smtp_client.ehlo()
            if smtp_username and smtp_password:
                smtp_client.login(smtp_username, smtp_password)
            smtp_client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise RuntimeError(f"SMTP delivery failed: {exc}") from exc
        finally:
            if smtp_client is not None:
                try:
                    smtp_client.quit()
                except (smtplib.SMTPException, OSError):
                    pass

    def _post_webhook(self, url: str, payload: Dict[str, Any]) -> None:
        target = (url or "").strip()
        if not target.startswith(("http://", "https://")):
            raise RuntimeError("Webhook URL is not configured (report settings webhook_url)")

        timeout = max(1, int(self.settings.webhook_timeout_seconds))
        try:
            response = httpx.post(target, json=payload, timeout=timeout)
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Webhook request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            detail = response.text.strip()
            if len(detail) > 280:
                detail = detail[:280]
            raise RuntimeError(f"Webhook delivery failed ({response.status_code}): {detail}")
