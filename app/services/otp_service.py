"""
OTP lifecycle: issue, dispatch, verify, invalidate.

Per identity the record moves NONE -> ISSUED -> (VERIFIED | EXPIRED | EXHAUSTED)
and back to NONE when it is deleted. Expiry and exhaustion are evaluated
lazily on verify; the store's sweep only reclaims space.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.database import SessionLocal
from app.core.errors import (
    ConsentRequired,
    DispatchFailed,
    Exhausted,
    Expired,
    InvalidCode,
    OtpNotFound,
    RateLimited,
    VerificationFailed,
)
from app.core.locks import KeyedLock, identity_locks
from app.core.otp import DispatchReceipt, generate_otp, send_otp
from app.core.phone import normalize_phone, require_identity
from app.core.timezone import get_ist_now
from app.services.optin_service import OptInDispatcher
from app.services.otp_store import OtpRecord
from app.services.user_service import UserService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

Sender = Callable[[str, str, int], DispatchReceipt]


@dataclass(frozen=True)
class IssueResult:
    phone: str
    expires_at: datetime
    expires_in: int
    message_id: Optional[str]
    status: Optional[str]


@dataclass(frozen=True)
class VerificationResult:
    phone: str
    verified_at: datetime


class OTPService:
    """Coordinates the rate limiter, OTP store and messaging provider"""

    def __init__(
        self,
        store,
        rate_limiter,
        sender: Sender = send_otp,
        opt_in: Optional[OptInDispatcher] = None,
        session_factory=SessionLocal,
        clock: Callable[[], datetime] = get_ist_now,
        expiry_minutes: int = 5,
        max_attempts: int = 3,
        locks: KeyedLock = identity_locks,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.sender = sender
        self.opt_in = opt_in
        self.session_factory = session_factory
        self.clock = clock
        self.expiry_minutes = expiry_minutes
        self.max_attempts = max_attempts
        self.locks = locks

    @staticmethod
    def _lock_key(phone: str) -> str:
        return f"otp:{phone}"

    def issue(self, phone: str, consent_given: bool = True) -> IssueResult:
        """
        Issue a fresh code, replacing any live one, and send it over WhatsApp.

        Raises:
            InvalidIdentity, ConsentRequired, RateLimited, DispatchFailed.
            A DispatchFailed leaves the new record in place.
        """
        identity = require_identity(phone)

        if not consent_given:
            raise ConsentRequired()

        if self.opt_in is not None:
            self.opt_in.submit(identity)

        with self.locks.hold(self._lock_key(identity)):
            if not self.rate_limiter.allow(identity):
                logger.warning("OTP rate limit hit for %s", identity)
                raise RateLimited()

            now = self.clock()
            record = OtpRecord(
                identity=identity,
                code=generate_otp(),
                expires_at=now + timedelta(minutes=self.expiry_minutes),
                attempts=0,
                created_at=now,
            )
            self.store.put(record)

        try:
            receipt = self.sender(identity, record.code, self.expiry_minutes)
        except DispatchFailed as e:
            logger.warning("OTP dispatch to %s failed: %s", identity, e.message)
            raise
        except Exception as e:
            logger.error("OTP dispatch to %s errored: %s", identity, e)
            raise DispatchFailed(str(e) or None)

        self._record_request(identity, now)

        return IssueResult(
            phone=identity,
            expires_at=record.expires_at,
            expires_in=max(0, int((record.expires_at - self.clock()).total_seconds())),
            message_id=receipt.message_id,
            status=receipt.status,
        )

    def verify(self, phone: str, code: str) -> VerificationResult:
        """
        Check a supplied code against the live record.

        Each guess claims an attempt before the comparison, so concurrent
        guesses (possibly in other processes) can never exceed max_attempts.

        Raises:
            OtpNotFound, Expired, Exhausted, InvalidCode (with attempts left),
            VerificationFailed if the user cannot be marked verified.
        """
        identity = normalize_phone(phone)

        with self.locks.hold(self._lock_key(identity)):
            record = self.store.get(identity)
            if record is None:
                raise OtpNotFound()

            now = self.clock()
            if record.is_expired(now):
                self.store.delete(identity)
                raise Expired()

            claimed = self.store.increment_attempts(identity)
            if claimed is None:
                raise OtpNotFound()

            if claimed.attempts > self.max_attempts:
                self.store.delete(identity)
                raise Exhausted()

            if not secrets.compare_digest(claimed.code, str(code).strip()):
                raise InvalidCode(attempts_left=self.max_attempts - claimed.attempts)

            self.store.delete(identity)

        db = self.session_factory()
        try:
            UserService.mark_verified(db, identity, now)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Database error marking %s verified: %s", identity, e)
            raise VerificationFailed()
        finally:
            db.close()

        logger.info("OTP verified for %s", identity)
        return VerificationResult(phone=identity, verified_at=now)

    def _record_request(self, identity: str, requested_at: datetime) -> None:
        db = self.session_factory()
        try:
            UserService.record_otp_request(db, identity, requested_at)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Database error (non-critical) recording OTP request for %s: %s", identity, e)
        finally:
            db.close()

    def start(self) -> None:
        self.store.start()
        self.rate_limiter.start()

    async def stop(self) -> None:
        await self.store.stop()
        await self.rate_limiter.stop()
        if self.opt_in is not None:
            self.opt_in.shutdown()
