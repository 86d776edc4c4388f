"""SMTP delivery of the inventory report link."""
from __future__ import annotations

from dataclasses import dataclass
from email import policy
from email.message import EmailMessage
import logging
import smtplib
from ssl import create_default_context

from flask import current_app

from cleanstock.errors import DeliveryError


logger = logging.getLogger(__name__)

REPORT_SUBJECT = "Inventory report"
REPORT_MESSAGE = "Here is the latest cleaning supplies inventory report."


@dataclass
class SMTPConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    use_tls: bool
    use_ssl: bool
    sender: str | None


def _as_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_smtp_config() -> SMTPConfig:
    """Build an SMTP configuration object from Flask settings."""

    host = current_app.config.get("REPORT_SMTP_HOST") or ""
    if not host:
        raise DeliveryError("REPORT_SMTP_HOST must be configured to send email")

    sender = current_app.config.get("REPORT_DEFAULT_SENDER") or None
    username = current_app.config.get("REPORT_SMTP_USERNAME") or None

    return SMTPConfig(
        host=host,
        port=int(current_app.config.get("REPORT_SMTP_PORT", 587)),
        username=username,
        password=current_app.config.get("REPORT_SMTP_PASSWORD") or None,
        use_tls=_as_bool(current_app.config.get("REPORT_SMTP_USE_TLS"), default=True),
        use_ssl=_as_bool(current_app.config.get("REPORT_SMTP_USE_SSL"), default=False),
        sender=sender or username,
    )


def build_report_message(recipient: str, report_url: str) -> EmailMessage:
    message = EmailMessage(policy=policy.default)
    message["Subject"] = REPORT_SUBJECT
    message["To"] = recipient
    message.set_content(f"{REPORT_MESSAGE}\n\n{report_url}\n")
    return message


def send_email_via_smtp(message: EmailMessage, smtp_config: SMTPConfig | None = None) -> None:
    """Send the provided message using the configured SMTP server."""

    config = smtp_config or load_smtp_config()
    if not config.sender:
        raise DeliveryError(
            "REPORT_DEFAULT_SENDER or SMTP username must be configured for sending email"
        )

    if "From" not in message:
        message["From"] = config.sender

    smtp_class = smtplib.SMTP_SSL if config.use_ssl else smtplib.SMTP
    try:
        with smtp_class(config.host, config.port, timeout=10) as client:
            client.ehlo()
            if config.use_tls and not config.use_ssl:
                client.starttls(context=create_default_context())
                client.ehlo()
            if config.username and config.password:
                client.login(config.username, config.password)
            client.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Report email to %s failed: %s", message["To"], exc)
        raise DeliveryError(f"Unable to send email: {exc}") from exc
    logger.info("Report email sent to %s", message["To"])


def send_report_email(recipient: str, report_url: str) -> None:
    recipient = (recipient or "").strip()
    if not recipient:
        raise DeliveryError("A recipient email address is required.")
    send_email_via_smtp(build_report_message(recipient, report_url))
