import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_otp_service
from app.schemas.auth import (
    AcceptTermsRequest,
    LoginRequest,
    SendOtpRequest,
    UpdateProfileRequest,
    VerifyOtpRequest,
)
from app.services.otp_service import OTPService
from app.services.user_service import UserService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@router.post("/send-otp")
def send_otp(payload: SendOtpRequest, otp_service: OTPService = Depends(get_otp_service)):
    result = otp_service.issue(payload.phone, consent_given=payload.consent_given)

    return {
        "success": True,
        "message": "OTP sent successfully via WhatsApp",
        "expiresIn": result.expires_in,
        "messageId": result.message_id,
        "status": result.status,
    }


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpRequest, otp_service: OTPService = Depends(get_otp_service)):
    result = otp_service.verify(payload.phone, payload.otp)

    return {
        "success": True,
        "message": "OTP verified successfully",
        "user": {"phone": result.phone, "verified": True},
    }


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return UserService.login(db, payload.phone)


@router.post("/update-profile")
def update_profile(payload: UpdateProfileRequest, db: Session = Depends(get_db)):
    return UserService.update_profile(db, payload.phone, payload.name, payload.age)


@router.post("/accept-terms")
def accept_terms(payload: AcceptTermsRequest, db: Session = Depends(get_db)):
    return UserService.accept_terms(db, payload.phone, payload.accepted)
