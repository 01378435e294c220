import logging
from uuid import uuid4

import httpx

from app.core.config import settings
from app.core.errors import InvalidAmount, PaymentOrderFailed

logger = logging.getLogger(__name__)

CURRENCY = "INR"


def create_order(amount: int) -> dict:
    """
    Create a Razorpay order for a wallet top-up.

    ``amount`` is already in paise. The wallet is credited separately, by the
    internal ``wallet/add`` call once payment succeeds.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount()

    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise PaymentOrderFailed("Payment provider is not configured")

    payload = {
        "amount": amount,
        "currency": CURRENCY,
        "receipt": f"wallet_{uuid4().hex[:16]}",
    }

    try:
        response = httpx.post(
            settings.RAZORPAY_API_URL,
            json=payload,
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET),
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.error("Razorpay order error: %s", str(e))
        raise PaymentOrderFailed()

    if response.status_code not in (200, 201):
        logger.warning("Razorpay order failed [%s]: %s", response.status_code, response.text)
        raise PaymentOrderFailed()

    return response.json()
