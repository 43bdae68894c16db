# slotkeeper/services/email_service.py
"""
Email Service

Sends booking emails through the Resend API. Bodies are rendered from Jinja
templates; booking, reschedule and reminder emails carry an ICS calendar
attachment. Email delivery is skipped (not failed) when no API key is
configured or the recipient address is malformed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
import re
from typing import Any, Callable, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader
import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import BRAND_NAME, EMAIL_PATTERN
from ..core.exceptions import DeliveryException
from ..core.run_context import RunContext
from ..core.timezone_utils import ensure_utc, format_local, utc_now
from .base import BaseService
from .template_registry import TemplateRegistry

_EMAIL_RE = re.compile(EMAIL_PATTERN)

ICS_LINE_OCTETS = 75

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

Sender = Callable[[Dict[str, Any]], Any]


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(value.strip()))


def escape_ics(value: str) -> str:
    """RFC 5545 text escaping."""
    return (
        value.replace("\\", "\\\\").replace(",", "\\,").replace(";", "\\;").replace("\n", "\\n")
    )


def fold_ics_line(line: str, limit: int = ICS_LINE_OCTETS) -> str:
    """Fold a content line at ``limit`` octets without splitting a UTF-8 character."""
    if len(line.encode("utf-8")) <= limit:
        return line
    parts: List[str] = []
    current = ""
    current_octets = 0
    # Continuation lines start with a space, which counts toward the limit
    room = limit
    for char in line:
        size = len(char.encode("utf-8"))
        if current_octets + size > room:
            parts.append(current)
            current, current_octets, room = "", 0, limit - 1
        current += char
        current_octets += size
    parts.append(current)
    return "\r\n ".join(parts)


def _ics_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y%m%dT%H%M%SZ")


@dataclass(frozen=True)
class CalendarEvent:
    uid: str
    start_at: datetime
    end_at: datetime
    summary: str
    description: str = ""
    location: str = ""

    def to_ics(self, stamp: Optional[datetime] = None) -> str:
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:-//{BRAND_NAME}//Booking//EN",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            "BEGIN:VEVENT",
            f"UID:{self.uid}@slotkeeper.app",
            f"DTSTAMP:{_ics_timestamp(stamp or utc_now())}",
            f"DTSTART:{_ics_timestamp(self.start_at)}",
            f"DTEND:{_ics_timestamp(self.end_at)}",
            f"SUMMARY:{escape_ics(self.summary)}",
            f"DESCRIPTION:{escape_ics(self.description)}",
            f"LOCATION:{escape_ics(self.location)}",
            "STATUS:CONFIRMED",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
        return "\r\n".join(fold_ics_line(line) for line in lines)

    def to_attachment(self) -> Dict[str, Any]:
        return {
            "filename": "appointment.ics",
            "content": list(self.to_ics().encode("utf-8")),
            "content_type": "text/calendar; method=PUBLISH",
        }


class EmailService(BaseService):
    """Service for sending emails using the Resend API."""

    def __init__(
        self,
        db: Optional[Session] = None,
        run_context: Optional[RunContext] = None,
        sender: Optional[Sender] = None,
    ):
        super().__init__(db, run_context)
        self._sender = sender
        api_key = settings.resend_api_key
        self.api_key = api_key.get_secret_value() if api_key is not None else None
        self.from_email = settings.email_from
        self.reply_to = settings.email_reply_to
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["local_datetime"] = lambda value, fmt="%A %d %B %Y at %H:%M": (
            format_local(value, fmt) if isinstance(value, datetime) else value
        )

    @property
    def is_configured(self) -> bool:
        return self._sender is not None or bool(self.api_key)

    def _send(self, payload: Dict[str, Any]) -> Any:
        if self._sender is not None:
            return self._sender(payload)
        resend.api_key = self.api_key
        return resend.Emails.send(payload)

    def render(self, template: TemplateRegistry, context: Dict[str, Any]) -> str:
        common = {"brand_name": BRAND_NAME, "app_url": settings.app_url}
        return self.env.get_template(template.value).render({**common, **context})

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        text = re.sub(r"<[^>]+>", "", html_content)
        return re.sub(r"\s+", " ", text).strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: Optional[str],
        subject: str,
        template: TemplateRegistry,
        context: Dict[str, Any],
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> bool:
        """
        Render and send one email.

        Returns:
            True when sent, False when skipped (bad address or not configured)

        Raises:
            DeliveryException: If the provider call fails
        """
        if not is_valid_email(to_email):
            self.logger.info(f"Skipping email '{subject}': invalid recipient {to_email!r}")
            return False
        if not self.is_configured:
            self.logger.warning(f"Email not configured; skipping '{subject}' to {to_email}")
            return False

        html_content = self.render(template, context)
        payload: Dict[str, Any] = {
            "from": self.from_email,
            "to": [to_email.strip()],
            "subject": subject,
            "html": html_content,
            "text": self._html_to_text(html_content),
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        if attachments:
            payload["attachments"] = attachments

        try:
            self._send(payload)
        except Exception as exc:
            self.logger.error(f"Failed to send email to {to_email}: {exc}")
            self.log_operation("email_failed", to_email=to_email, subject=subject, error=str(exc))
            raise DeliveryException(f"Email sending failed: {exc}") from exc

        self.logger.info(f"Email sent to {to_email} - Subject: {subject}")
        return True
