import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORE_BACKEND"] = "memory"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["GUPSHUP_API_KEY"] = "test-gupshup-key"
os.environ["GUPSHUP_SENDER"] = "919000000000"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.errors import DispatchFailed
from app.core.locks import KeyedLock
from app.core.otp import DispatchReceipt
from app.models import user, wallet, tournament  # noqa: F401
from app.services.otp_service import OTPService
from app.services.otp_store import MemoryOtpStore
from app.services.rate_limiter import MemoryRateLimiter

PHONE = "9876543210"
INTERNAL_HEADERS = {"Authorization": "Bearer test-internal-key"}


class FakeClock:
    """Manually advanced clock shared by the stores and the OTP service"""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeSender:
    """Stands in for the Gupshup client; remembers every code it was asked to send"""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def __call__(self, phone: str, code: str, expiry_minutes: int) -> DispatchReceipt:
        self.sent.append((phone, code, expiry_minutes))
        if self.fail_with is not None:
            raise self.fail_with
        return DispatchReceipt(status="submitted", message_id=f"msg-{len(self.sent)}")

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]

    def fail(self, message: str = "Gupshup server error"):
        self.fail_with = DispatchFailed(message)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def otp_service(db, clock, sender):
    return OTPService(
        store=MemoryOtpStore(clock=clock),
        rate_limiter=MemoryRateLimiter(max_requests=5, window_seconds=3600, clock=clock),
        sender=sender,
        session_factory=SessionLocal,
        clock=clock,
        expiry_minutes=5,
        max_attempts=3,
        locks=KeyedLock(),
    )


@pytest.fixture
def client(db, otp_service):
    from app.main import app

    app.state.otp_service = otp_service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        del app.state.otp_service
