"""
Templated e-mail notifications sent over SMTP.

The Mailer is built once by the application factory. Sending is best
effort: failures are logged and reported as False, never raised, so a lost
e-mail never undoes the request that triggered it.
"""

import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import Settings

logger = logging.getLogger(__name__)


def _visitor_qr_code(visitor_name: str, qr_code_url: str, **_) -> Tuple[str, str]:
    return (
        "Your Visitor QR Code",
        f"""
        <h2>Welcome {escape(visitor_name)}!</h2>
        <p>Your QR code for check-in is attached below.</p>
        <p>Please present this QR code at the reception when you arrive.</p>
        <img src="{qr_code_url}" alt="Visitor QR Code" style="max-width: 300px;">
        <p>This QR code is valid for 24 hours.</p>
        """,
    )


def _visitor_reminder(visitor_name: str, visit_date: str, **_) -> Tuple[str, str]:
    return (
        "Reminder: Upcoming Visit",
        f"""
        <h2>Visit Reminder</h2>
        <p>Dear {escape(visitor_name)},</p>
        <p>This is a reminder that you have a scheduled visit on {escape(visit_date)}.</p>
        <p>Please don't forget to bring your QR code.</p>
        """,
    )


def _new_visitor_alert(visitor_name: str, visit_date: str, purpose: str, **_) -> Tuple[str, str]:
    return (
        "New Visitor Alert",
        f"""
        <h2>New Visitor Alert</h2>
        <p>A new visitor has been registered:</p>
        <ul>
          <li>Name: {escape(visitor_name)}</li>
          <li>Visit Date: {escape(visit_date)}</li>
          <li>Purpose: {escape(purpose)}</li>
        </ul>
        """,
    )


def _daily_report(
    total_visitors: int, checked_in: int, checked_out: int, top_purposes: Iterable[dict], **_
) -> Tuple[str, str]:
    items = "".join(
        f"<li>{escape(str(p['purpose']))}: {p['count']}</li>" for p in top_purposes
    )
    return (
        "Daily Visitor Report",
        f"""
        <h2>Daily Visitor Report</h2>
        <p>Total Visitors: {total_visitors}</p>
        <p>Checked In: {checked_in}</p>
        <p>Checked Out: {checked_out}</p>
        <p>Top Visit Purposes:</p>
        <ul>{items}</ul>
        """,
    )


TEMPLATES: Dict[str, Callable[..., Tuple[str, str]]] = {
    "visitor_qr_code": _visitor_qr_code,
    "visitor_reminder": _visitor_reminder,
    "new_visitor_alert": _new_visitor_alert,
    "daily_report": _daily_report,
}


# PUBLIC_INTERFACE
def render_template(template: str, **context) -> Tuple[str, str]:
    """Return (subject, html) for a named template. Unknown names raise KeyError."""
    return TEMPLATES[template](**context)


# PUBLIC_INTERFACE
class Mailer:
    """SMTP mailer. With no host configured it only logs what it would send."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username or "no-reply@localhost"
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.mail_from,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def build_message(self, to: List[str], template: str, **context) -> EmailMessage:
        subject, html = render_template(template, **context)
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(to)
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        client.starttls()
        return client

    # PUBLIC_INTERFACE
    def send(self, to, template: str, **context) -> bool:
        """
        Render `template` with `context` and deliver it to `to`
        (one address or a list). Returns True when handed to the SMTP server.
        """
        recipients = [to] if isinstance(to, str) else [r for r in to if r]
        if not recipients:
            return False
        message = self.build_message(recipients, template, **context)

        if not self.enabled:
            logger.info("SMTP disabled; skipped %s e-mail to %s", template, ", ".join(recipients))
            return False

        try:
            with self._connect() as client:
                if self.username:
                    client.login(self.username, self.password or "")
                client.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send %s e-mail to %s", template, ", ".join(recipients))
            return False

        logger.info("Sent %s e-mail to %s", template, ", ".join(recipients))
        return True
