"""
Tests for the OTP lifecycle: issuance, rate limiting, verification
"""
import threading
from unittest.mock import Mock

import fakeredis
import pytest
from sqlalchemy.exc import OperationalError

from app.core.database import SessionLocal
from app.core.errors import (
    ConsentRequired,
    DispatchFailed,
    Exhausted,
    Expired,
    InvalidCode,
    InvalidIdentity,
    OtpNotFound,
    RateLimited,
    VerificationFailed,
)
from app.core.locks import KeyedLock
from app.models.user import User
from app.services.otp_service import OTPService
from app.services.otp_store import RedisOtpStore
from app.services.rate_limiter import RedisRateLimiter

PHONE = "9876543210"


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


class TestIssue:

    def test_issue_stores_record_and_dispatches(self, otp_service, sender, clock):
        result = otp_service.issue("+91 98765 43210")

        assert result.phone == PHONE
        assert result.expires_in == 300
        assert result.message_id == "msg-1"
        assert result.status == "submitted"

        record = otp_service.store.get(PHONE)
        assert record.attempts == 0
        assert record.code == sender.last_code
        assert len(record.code) == 6 and record.code.isdigit()
        assert 100000 <= int(record.code) <= 999999
        assert sender.sent == [(PHONE, record.code, 5)]

    def test_issue_records_otp_request_on_user(self, otp_service, db, clock):
        otp_service.issue(PHONE)

        user = db.query(User).filter(User.phone == PHONE).first()
        assert user.terms_accepted is True
        assert user.last_otp_request == clock()
        assert user.is_verified is False

    def test_invalid_identity(self, otp_service, sender):
        with pytest.raises(InvalidIdentity):
            otp_service.issue("12345")
        assert sender.sent == []

    def test_consent_required(self, otp_service, sender):
        with pytest.raises(ConsentRequired):
            otp_service.issue(PHONE, consent_given=False)
        assert otp_service.store.get(PHONE) is None
        assert otp_service.rate_limiter.remaining(PHONE) == 5

    def test_reissue_invalidates_previous_code(self, otp_service, sender):
        otp_service.issue(PHONE)
        first = sender.last_code
        otp_service.issue(PHONE)
        second = sender.last_code

        if first != second:
            with pytest.raises(InvalidCode):
                otp_service.verify(PHONE, first)
        assert otp_service.verify(PHONE, second).phone == PHONE

    def test_sixth_request_in_window_is_rate_limited(self, otp_service, sender, clock):
        for _ in range(5):
            otp_service.issue(PHONE)

        with pytest.raises(RateLimited) as exc:
            otp_service.issue(PHONE)
        assert exc.value.status_code == 429
        assert len(sender.sent) == 5

        clock.advance(hours=1, seconds=1)
        assert otp_service.issue(PHONE).phone == PHONE

    def test_dispatch_failure_keeps_record(self, otp_service, sender):
        sender.fail("Gupshup server error")

        with pytest.raises(DispatchFailed) as exc:
            otp_service.issue(PHONE)
        assert exc.value.message == "Gupshup server error"

        code = sender.last_code
        assert otp_service.store.get(PHONE).code == code
        assert otp_service.verify(PHONE, code).phone == PHONE

    def test_unexpected_sender_error_becomes_dispatch_failed(self, otp_service, sender):
        sender.fail_with = RuntimeError("socket closed")

        with pytest.raises(DispatchFailed) as exc:
            otp_service.issue(PHONE)
        assert exc.value.message == "socket closed"

    def test_opt_in_is_submitted_without_blocking(self, otp_service):
        opt_in = Mock()
        otp_service.opt_in = opt_in

        otp_service.issue(PHONE)

        opt_in.submit.assert_called_once_with(PHONE)


class TestVerify:

    def test_correct_code_succeeds_once(self, otp_service, sender, db, clock):
        otp_service.issue(PHONE)
        code = sender.last_code

        result = otp_service.verify(PHONE, code)
        assert result.phone == PHONE
        assert result.verified_at == clock()

        with pytest.raises(OtpNotFound):
            otp_service.verify(PHONE, code)

        user = db.query(User).filter(User.phone == PHONE).first()
        db.refresh(user)
        assert user.is_verified is True
        assert user.verified_at == clock()

    def test_no_record(self, otp_service):
        with pytest.raises(OtpNotFound) as exc:
            otp_service.verify(PHONE, "123456")
        assert exc.value.code == "OTP_NOT_FOUND"

    def test_wrong_code_reports_attempts_left(self, otp_service, sender):
        otp_service.issue(PHONE)
        bad = wrong_code(sender.last_code)

        with pytest.raises(InvalidCode) as exc:
            otp_service.verify(PHONE, bad)
        assert exc.value.attempts_left == 2
        assert exc.value.to_dict()["attemptsLeft"] == 2

        with pytest.raises(InvalidCode) as exc:
            otp_service.verify(PHONE, bad)
        assert exc.value.attempts_left == 1

    def test_three_wrong_attempts_exhaust_the_code(self, otp_service, sender):
        otp_service.issue(PHONE)
        code = sender.last_code
        bad = wrong_code(code)

        for expected_left in (2, 1, 0):
            with pytest.raises(InvalidCode) as exc:
                otp_service.verify(PHONE, bad)
            assert exc.value.attempts_left == expected_left

        with pytest.raises(Exhausted):
            otp_service.verify(PHONE, code)

        assert otp_service.store.get(PHONE) is None
        with pytest.raises(OtpNotFound):
            otp_service.verify(PHONE, code)

    def test_expired_code_reports_expired_not_invalid(self, otp_service, sender, clock):
        otp_service.issue(PHONE)
        code = sender.last_code

        clock.advance(minutes=5, seconds=1)

        with pytest.raises(Expired):
            otp_service.verify(PHONE, wrong_code(code))
        assert otp_service.store.get(PHONE) is None

    def test_code_valid_at_exact_expiry(self, otp_service, sender, clock):
        otp_service.issue(PHONE)
        clock.advance(minutes=5)
        assert otp_service.verify(PHONE, sender.last_code).phone == PHONE

    def test_verify_normalizes_phone(self, otp_service, sender):
        otp_service.issue(PHONE)
        assert otp_service.verify("+91-9876543210", sender.last_code).phone == PHONE

    def test_sweep_removes_expired_records(self, otp_service, clock):
        otp_service.issue(PHONE)
        clock.advance(minutes=6)

        assert otp_service.store.sweep() == 1
        with pytest.raises(OtpNotFound):
            otp_service.verify(PHONE, "123456")

    def test_database_failure_reports_verification_failed(self, otp_service, sender):
        otp_service.issue(PHONE)
        session = Mock()
        session.commit.side_effect = OperationalError("UPDATE users", {}, Exception("database is locked"))
        otp_service.session_factory = lambda: session

        with pytest.raises(VerificationFailed) as exc:
            otp_service.verify(PHONE, sender.last_code)

        assert exc.value.to_dict()["code"] == "VERIFICATION_FAILED"
        assert exc.value.status_code == 500
        session.rollback.assert_called_once()
        session.close.assert_called_once()


def shared_redis_service(server, clock, sender):
    """An OTPService as a separate API process would build it: own client, own locks."""
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    return OTPService(
        store=RedisOtpStore(client, clock=clock),
        rate_limiter=RedisRateLimiter(client, clock=clock),
        sender=sender,
        session_factory=SessionLocal,
        clock=clock,
        locks=KeyedLock(),
    )


class TestSharedRedisBackend:

    def test_code_issued_by_one_process_verifies_in_another(self, db, clock, sender):
        server = fakeredis.FakeServer()
        first = shared_redis_service(server, clock, sender)
        second = shared_redis_service(server, clock, sender)

        first.issue(PHONE)

        assert second.verify(PHONE, sender.last_code).phone == PHONE
        with pytest.raises(OtpNotFound):
            first.verify(PHONE, sender.last_code)

    def test_concurrent_last_guesses_cannot_exceed_limit(self, db, clock, sender):
        server = fakeredis.FakeServer()
        first = shared_redis_service(server, clock, sender)
        second = shared_redis_service(server, clock, sender)
        first.issue(PHONE)
        bad = wrong_code(sender.last_code)
        for _ in range(2):
            with pytest.raises(InvalidCode):
                first.verify(PHONE, bad)

        barrier = threading.Barrier(2)
        outcomes = []

        def guess(service):
            barrier.wait()
            try:
                service.verify(PHONE, bad)
            except (InvalidCode, Exhausted) as e:
                outcomes.append(type(e).__name__)

        threads = [threading.Thread(target=guess, args=(s,)) for s in (first, second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(outcomes) == ["Exhausted", "InvalidCode"]

    def test_processes_share_the_issue_limit(self, db, clock, sender):
        server = fakeredis.FakeServer()
        services = [shared_redis_service(server, clock, sender) for _ in range(2)]

        for i in range(5):
            services[i % 2].issue(PHONE)

        with pytest.raises(RateLimited):
            services[1].issue(PHONE)
