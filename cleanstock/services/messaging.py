"""Relay report links to the Twilio Messages API over WhatsApp."""

from __future__ import annotations

import base64
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from flask import current_app

from cleanstock.errors import DeliveryError


logger = logging.getLogger(__name__)


def _whatsapp(number: str) -> str:
    number = number.strip()
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


def send_whatsapp_report(to: str, media_url: str, *, timeout: float = 10.0) -> str:
    """Create one outbound message with ``media_url`` attached; return its SID."""

    config = current_app.config
    account_sid = config.get("TWILIO_SID") or ""
    auth_token = config.get("TWILIO_AUTH_TOKEN") or ""
    sender = config.get("TWILIO_PHONE_NUMBER") or ""
    if not account_sid or not auth_token or not sender:
        raise DeliveryError("Twilio credentials are not configured")

    base = (config.get("TWILIO_API_BASE") or "https://api.twilio.com").rstrip("/")
    url = f"{base}/2010-04-01/Accounts/{account_sid}/Messages.json"
    payload = urlencode(
        {"From": _whatsapp(sender), "To": _whatsapp(to), "MediaUrl": media_url}
    ).encode("utf-8")
    credentials = base64.b64encode(f"{account_sid}:{auth_token}".encode("utf-8"))
    request = Request(
        url,
        data=payload,
        headers={
            "Authorization": f"Basic {credentials.decode('ascii')}",
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        },
        method="POST",
    )

    try:
        with urlopen(request, timeout=timeout) as response:
            body = json.loads(response.read().decode("utf-8") or "{}")
    except HTTPError as exc:
        detail = exc.reason
        try:
            detail = json.loads(exc.read().decode("utf-8")).get("message") or detail
        except ValueError:
            pass
        logger.error("Twilio rejected message to %s: %s", to, detail)
        raise DeliveryError(str(detail)) from exc
    except (URLError, OSError, ValueError) as exc:
        logger.error("Twilio request for %s failed: %s", to, exc)
        raise DeliveryError(str(exc)) from exc

    sid = body.get("sid")
    if not sid:
        raise DeliveryError("Messaging provider returned no message SID")
    logger.info("Sent report message %s to %s", sid, to)
    return sid
