from fastapi import Request

from app.core.config import Settings
from app.core.database import SessionLocal
from app.core.redis import RedisClient
from app.services.optin_service import OptInDispatcher
from app.services.otp_service import OTPService
from app.services.otp_store import MemoryOtpStore, RedisOtpStore
from app.services.rate_limiter import MemoryRateLimiter, RedisRateLimiter


def build_otp_service(config: Settings, session_factory=SessionLocal) -> OTPService:
    """Wire the OTP service for the configured store backend."""
    if config.STORE_BACKEND == "redis":
        client = RedisClient.get_client()
        store = RedisOtpStore(client, grace_seconds=config.SWEEP_INTERVAL_SECONDS)
        rate_limiter = RedisRateLimiter(
            client,
            max_requests=config.OTP_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=config.OTP_RATE_LIMIT_WINDOW_SECONDS,
        )
    elif config.STORE_BACKEND == "memory":
        store = MemoryOtpStore(sweep_interval_seconds=config.SWEEP_INTERVAL_SECONDS)
        rate_limiter = MemoryRateLimiter(
            max_requests=config.OTP_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=config.OTP_RATE_LIMIT_WINDOW_SECONDS,
            sweep_interval_seconds=config.SWEEP_INTERVAL_SECONDS,
        )
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND}")

    return OTPService(
        store=store,
        rate_limiter=rate_limiter,
        opt_in=OptInDispatcher(),
        session_factory=session_factory,
        expiry_minutes=config.OTP_EXPIRY_MINUTES,
        max_attempts=config.OTP_MAX_ATTEMPTS,
    )


def get_otp_service(request: Request) -> OTPService:
    return request.app.state.otp_service
