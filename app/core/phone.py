import re

from app.core.errors import InvalidIdentity

_IDENTITY_RE = re.compile(r"^[6-9]\d{9}$")
_LOGIN_RE = re.compile(r"^(\+91)?[6-9]\d{9}$")

COUNTRY_CODE = "91"


def normalize_phone(phone: str) -> str:
    """Strip formatting and the 91 country code, leaving the 10-digit identity."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith(COUNTRY_CODE) and len(digits) == 12:
        digits = digits[2:]
    return digits


def is_valid_identity(phone: str) -> bool:
    return bool(_IDENTITY_RE.match(phone or ""))


def require_identity(phone: str) -> str:
    """Normalize and validate, raising InvalidIdentity when the result is not a mobile number."""
    normalized = normalize_phone(phone)
    if not is_valid_identity(normalized):
        raise InvalidIdentity()
    return normalized


def is_valid_login_phone(phone: str) -> bool:
    """Stricter check used by login: raw input must already be +91XXXXXXXXXX or XXXXXXXXXX."""
    return bool(_LOGIN_RE.match((phone or "").strip()))


def to_whatsapp_number(phone: str) -> str:
    """Ensure phone number has 91 prefix for WhatsApp."""
    phone = phone.strip().replace("+", "").replace(" ", "").replace("-", "")
    if not phone.startswith(COUNTRY_CODE) or len(phone) == 10:
        phone = COUNTRY_CODE + phone
    return phone
