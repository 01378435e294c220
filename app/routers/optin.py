import logging

from fastapi import APIRouter, HTTPException

from app.core.otp import OptInError, register_opt_in
from app.core.phone import normalize_phone
from app.schemas.auth import OptInRequest

router = APIRouter(prefix="/api/v1/optin", tags=["optin"])

logger = logging.getLogger(__name__)


@router.post("")
def opt_in(payload: OptInRequest):
    """Register a WhatsApp opt-in directly, surfacing provider errors to the caller."""
    phone = normalize_phone(payload.phone)
    if not 10 <= len(phone) <= 15:
        raise HTTPException(status_code=400, detail="Invalid phone number")

    try:
        result = register_opt_in(phone)
    except OptInError as e:
        logger.error("Gupshup opt-in error: %s", e.message)
        if e.status_code == 400:
            raise HTTPException(status_code=400, detail=e.message or "Invalid request parameters")
        if e.status_code == 401:
            raise HTTPException(status_code=500, detail="Authentication failed")
        if e.status_code == 415:
            raise HTTPException(status_code=500, detail="Content type error")
        raise HTTPException(status_code=500, detail=e.message or "Failed to register opt-in")

    return {"success": True, "message": result["message"], "status": result["status"]}
