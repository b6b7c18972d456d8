from __future__ import annotations

import json
import logging
import mimetypes
import os
import smtplib
from email.message import EmailMessage
from typing import Dict, List, Optional, Protocol, Sequence

import requests

from . import config
from .models import OutgoingMessage, normalize_recipients

LOGGER = logging.getLogger(__name__)


class MailTransport(Protocol):
    def send(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        attachments: Sequence[str],
    ) -> bool:
        ...


def _smtp_connection():
    host = os.getenv("SMTP_HOST")
    port = int(os.getenv("SMTP_PORT", "587"))
    username = os.getenv("SMTP_USERNAME")
    password = os.getenv("SMTP_PASSWORD")
    use_tls = os.getenv("SMTP_USE_TLS", "1") not in {"0", "false", "False"}

    if not host:
        return None

    server = smtplib.SMTP(host, port, timeout=10)
    try:
        if use_tls:
            server.starttls()
        if username and password:
            server.login(username, password)
    except Exception:
        server.quit()
        raise
    return server


def _attach_files(email: EmailMessage, attachments: Sequence[str]) -> None:
    for path in attachments:
        if not os.path.isfile(path):
            LOGGER.warning("Attachment %s not found; skipping", path)
            continue
        ctype, _ = mimetypes.guess_type(path)
        maintype, subtype = (ctype or "application/octet-stream").split("/", 1)
        with open(path, "rb") as fh:
            email.add_attachment(
                fh.read(),
                maintype=maintype,
                subtype=subtype,
                filename=os.path.basename(path),
            )


class SmtpTransport:
    """Send notifications through the SMTP relay configured in the environment."""

    def build_message(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        attachments: Sequence[str],
    ) -> Optional[EmailMessage]:
        to = normalize_recipients(recipients)
        sender = headers.get("From") or config.default_sender()
        if not to:
            LOGGER.info("Skipping email '%s': no recipients", subject)
            return None
        if not sender:
            LOGGER.warning("Skipping email notification: NOTIFY_FROM_EMAIL not configured")
            return None

        email = EmailMessage()
        email["Subject"] = subject
        email["From"] = sender
        email["To"] = ", ".join(to)
        for name, value in headers.items():
            if name not in {"From", "Content-Type"}:
                email[name] = value
        if headers.get("Content-Type", "").startswith("text/html"):
            email.set_content(body, subtype="html")
        else:
            email.set_content(body)
        _attach_files(email, attachments)
        return email

    def send(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        attachments: Sequence[str],
    ) -> bool:
        email = self.build_message(recipients, subject, body, headers, attachments)
        if email is None:
            return False

        try:
            server = _smtp_connection()
            if server is None:
                LOGGER.warning("SMTP_HOST not configured; email suppressed")
                return False
            with server:
                server.send_message(email)
            LOGGER.info("Sent email notification '%s' to %s", subject, email["To"])
            return True
        except Exception as exc:  # pragma: no cover - network dependant
            LOGGER.exception("Failed to send email notification: %s", exc)
            return False


class HttpApiTransport:
    """Send notifications through a JSON mail API (``MAIL_API_URL``)."""

    def __init__(self, url: Optional[str] = None, token: Optional[str] = None, timeout: float = 5) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout

    def send(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        attachments: Sequence[str],
    ) -> bool:
        url = self.url or os.getenv("MAIL_API_URL")
        if not url:
            LOGGER.warning("MAIL_API_URL not configured; email suppressed")
            return False
        to = normalize_recipients(recipients)
        if not to:
            LOGGER.info("Skipping email '%s': no recipients", subject)
            return False

        payload = {
            "to": to,
            "from": headers.get("From") or config.default_sender(),
            "subject": subject,
            "body": body,
            "content_type": headers.get("Content-Type", "text/plain"),
            "attachments": list(attachments),
        }
        request_headers = {"Content-Type": "application/json"}
        token = self.token or os.getenv("MAIL_API_TOKEN")
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        try:
            resp = requests.post(url, headers=request_headers, data=json.dumps(payload), timeout=self.timeout)
            if resp.status_code >= 400:
                LOGGER.error("Mail API responded with %s: %s", resp.status_code, resp.text[:120])
                return False
            LOGGER.info("Sent email notification '%s' via mail API", subject)
            return True
        except Exception as exc:  # pragma: no cover - network dependant
            LOGGER.exception("Failed to send email notification via mail API: %s", exc)
            return False


class OutboxTransport:
    """Keeps messages in memory instead of sending them."""

    def __init__(self) -> None:
        self.outbox: List[OutgoingMessage] = []

    def send(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        headers: Dict[str, str],
        attachments: Sequence[str],
    ) -> bool:
        to = normalize_recipients(recipients)
        if not to:
            return False
        self.outbox.append(
            OutgoingMessage(
                recipients=to,
                subject=subject,
                body=body,
                headers=dict(headers),
                attachments=list(attachments),
            )
        )
        LOGGER.info("Captured email notification '%s' for %s", subject, ", ".join(to))
        return True


def build_transport(name: Optional[str] = None) -> MailTransport:
    name = (name or config.transport_name()).lower()
    if name == "api":
        return HttpApiTransport()
    if name == "outbox":
        return OutboxTransport()
    return SmtpTransport()
