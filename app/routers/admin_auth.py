import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from app.core.config import settings
from app.core.admin_auth import verify_password, create_access_token

router = APIRouter(prefix="/api/v1/admin", tags=["admin-auth"])

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=LoginResponse)
def admin_login(body: LoginRequest):
    """Issue an admin JWT for creating tournaments and paying prizes."""
    if (
        body.username != settings.ADMIN_USERNAME
        or not verify_password(body.password, settings.ADMIN_PASSWORD_HASH)
    ):
        logger.warning("Failed admin login for %s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    return LoginResponse(access_token=create_access_token(body.username))
