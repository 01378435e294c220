import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.errors import DispatchFailed
from app.core.phone import to_whatsapp_number

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT_SECONDS = 15.0
OPTIN_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class DispatchReceipt:
    status: Optional[str]
    message_id: Optional[str]


class OptInError(Exception):
    """Raised by register_opt_in; carries the provider's HTTP status when there was one."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


def _provider_message(response: httpx.Response, default: str) -> str:
    try:
        return response.json().get("message") or default
    except ValueError:
        return default


def send_otp(mobile_number: str, otp: str, expiry_minutes: int) -> DispatchReceipt:
    """Send OTP to user via a Gupshup WhatsApp template message."""
    phone = to_whatsapp_number(mobile_number)

    payload = {
        "channel": "whatsapp",
        "source": settings.GUPSHUP_SENDER or "",
        "destination": phone,
        "src.name": settings.GUPSHUP_APP_NAME,
        "template": settings.GUPSHUP_TEMPLATE_NAME,
        "template.params": f"{otp}|{expiry_minutes}",
    }

    try:
        response = httpx.post(
            settings.GUPSHUP_API_URL,
            data=payload,
            headers={
                "apikey": settings.GUPSHUP_API_KEY or "",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=DISPATCH_TIMEOUT_SECONDS,
        )
    except httpx.TimeoutException:
        logger.error("Gupshup OTP timeout for %s", phone)
        raise DispatchFailed("No response from Gupshup API - network issue")
    except httpx.HTTPError as e:
        logger.error("Gupshup OTP error: %s", str(e))
        raise DispatchFailed("No response from Gupshup API - network issue")

    logger.info("Gupshup OTP response [%s] for %s", response.status_code, phone)

    if response.status_code == 401:
        raise DispatchFailed("Invalid Gupshup API key")
    if response.status_code == 400:
        raise DispatchFailed(f"Bad request: {_provider_message(response, 'Invalid parameters')}")
    if response.status_code == 429:
        raise DispatchFailed("Rate limit exceeded on Gupshup API")
    if response.status_code >= 500:
        raise DispatchFailed("Gupshup server error")
    if response.status_code >= 300:
        raise DispatchFailed(f"Gupshup error: HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        raise DispatchFailed(f"Unexpected Gupshup response: {response.text}")

    if data.get("status") in ("submitted", "queued") or data.get("messageId"):
        logger.info("OTP sent to %s via WhatsApp", phone)
        return DispatchReceipt(status=data.get("status"), message_id=data.get("messageId"))

    logger.warning("Unexpected Gupshup response: %s", data)
    raise DispatchFailed(f"Unexpected Gupshup response: {data}")


def register_opt_in(mobile_number: str) -> dict:
    """Register a WhatsApp opt-in for the number with Gupshup."""
    phone = to_whatsapp_number(mobile_number)

    payload = {
        "channel": "whatsapp",
        "source": phone,
        "destination": settings.GUPSHUP_SENDER or "",
        "src.name": settings.GUPSHUP_APP_NAME,
        "context.optinType": "checkbox",
        "context.optinSource": "mobile_app",
    }

    try:
        response = httpx.post(
            f"{settings.GUPSHUP_OPTIN_URL}/{settings.GUPSHUP_APP_NAME}",
            data=payload,
            headers={
                "apikey": settings.GUPSHUP_API_KEY or "",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=OPTIN_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as e:
        raise OptInError(f"Failed to register opt-in: {e}")

    if response.status_code >= 300:
        raise OptInError(
            _provider_message(response, "Gupshup API error"),
            status_code=response.status_code,
        )

    data = response.json()
    if data.get("status") in ("success", "submitted"):
        return {"status": data["status"], "message": data.get("message") or "Opt-in successful"}

    raise OptInError(f"Unexpected response: {data}")
