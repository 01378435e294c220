"""
Service error taxonomy.

Every failure a caller can observe is a ServiceError subclass carrying a
stable ``code`` and an HTTP status. Routers let these propagate; the handler
registered in ``app.main`` renders them as ``{success, code, message, ...}``.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    code = "SERVICE_ERROR"
    status_code = 400
    message = "Request failed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message, **self.extra}


class InvalidIdentity(ServiceError):
    code = "INVALID_PHONE"
    message = "Invalid Indian phone number format"


class ConsentRequired(ServiceError):
    code = "CONSENT_REQUIRED"
    message = "User consent is required"


class RateLimited(ServiceError):
    code = "RATE_LIMITED"
    status_code = 429
    message = "Too many OTP requests. Try again in 1 hour."


class DispatchFailed(ServiceError):
    code = "OTP_SEND_FAILED"
    status_code = 502
    message = "Failed to send OTP"


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Not found"


class OtpNotFound(NotFound):
    code = "OTP_NOT_FOUND"
    status_code = 400
    message = "OTP not found or expired"


class Expired(ServiceError):
    code = "OTP_EXPIRED"
    message = "OTP has expired"


class Exhausted(ServiceError):
    code = "MAX_ATTEMPTS_EXCEEDED"
    message = "Too many invalid attempts"


class InvalidCode(ServiceError):
    code = "INVALID_OTP"
    message = "Invalid OTP"

    def __init__(self, attempts_left: int):
        super().__init__(attemptsLeft=attempts_left)
        self.attempts_left = attempts_left


class VerificationFailed(ServiceError):
    code = "VERIFICATION_FAILED"
    status_code = 500
    message = "Failed to verify OTP"


class InsufficientFunds(ServiceError):
    code = "INSUFFICIENT_FUNDS"
    message = "Insufficient wallet balance"


class InvalidAmount(ServiceError):
    code = "INVALID_AMOUNT"
    message = "Amount must be a positive integer"


class AlreadyJoined(ServiceError):
    code = "ALREADY_JOINED"
    message = "Player already joined"


class Full(ServiceError):
    code = "TOURNAMENT_FULL"
    message = "Tournament full"


class TournamentNotFound(NotFound):
    code = "TOURNAMENT_NOT_FOUND"
    message = "Tournament not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    message = "User not found"


class WalletNotFound(NotFound):
    code = "WALLET_NOT_FOUND"
    message = "Wallet not found"


class UnderAge(ServiceError):
    code = "UNDER_AGE"
    status_code = 403
    message = "You are not old enough, kiddo. Come back at 18!"


class TermsNotAccepted(ServiceError):
    code = "TERMS_REQUIRED"
    message = "Must accept terms"


class PaymentOrderFailed(ServiceError):
    code = "PAYMENT_ORDER_FAILED"
    status_code = 502
    message = "Failed to create payment order"
