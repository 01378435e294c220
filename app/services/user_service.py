import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidIdentity, TermsNotAccepted, UnderAge, UserNotFound
from app.core.phone import is_valid_login_phone, normalize_phone, require_identity
from app.models.user import User

logger = logging.getLogger(__name__)

MINIMUM_AGE = 18


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "phone": user.phone,
        "name": user.name,
        "age": user.age,
        "termsAccepted": user.terms_accepted,
        "isVerified": user.is_verified,
        "verifiedAt": user.verified_at.isoformat() if user.verified_at else None,
        "isOptedIn": user.is_opted_in,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


class UserService:

    @staticmethod
    def get(db: Session, phone: str) -> Optional[User]:
        return db.query(User).filter(User.phone == phone).first()

    @staticmethod
    def _get_or_create(db: Session, phone: str) -> User:
        user = UserService.get(db, phone)
        if user is None:
            user = User(phone=phone)
            db.add(user)
        return user

    @staticmethod
    def record_otp_request(db: Session, phone: str, requested_at: datetime) -> User:
        """Requesting an OTP requires consent, which doubles as terms acceptance."""
        user = UserService._get_or_create(db, phone)
        user.terms_accepted = True
        user.last_otp_request = requested_at
        db.commit()
        return user

    @staticmethod
    def mark_verified(db: Session, phone: str, verified_at: datetime) -> User:
        user = UserService._get_or_create(db, phone)
        user.is_verified = True
        user.verified_at = verified_at
        db.commit()
        return user

    @staticmethod
    def _delete_under_age(db: Session, phone: str) -> None:
        deleted = db.query(User).filter(User.phone == phone).delete()
        db.commit()
        if deleted:
            logger.info("Deleted under-age user %s", phone)

    @staticmethod
    def login(db: Session, raw_phone: str) -> Dict[str, Any]:
        if not is_valid_login_phone(raw_phone):
            raise InvalidIdentity("Invalid Indian phone number")

        phone = normalize_phone(raw_phone)
        user = UserService.get(db, phone)

        if user is None:
            db.add(User(phone=phone))
            db.commit()
            return {"newUser": True, "message": "Phone verified. Enter name and age."}

        if not user.profile_complete:
            return {"newUser": True, "message": "Complete profile (name and age)."}

        if user.age < MINIMUM_AGE:
            UserService._delete_under_age(db, phone)
            raise UnderAge()

        if not user.terms_accepted:
            return {"termsRequired": True, "message": "Please accept Terms and Conditions"}

        return {"success": True, "message": "Login successful", "user": serialize_user(user)}

    @staticmethod
    def update_profile(db: Session, raw_phone: str, name: str, age: int) -> Dict[str, Any]:
        phone = require_identity(raw_phone)

        if age < MINIMUM_AGE:
            UserService._delete_under_age(db, phone)
            raise UnderAge()

        user = UserService.get(db, phone)
        created = user is None
        if created:
            user = User(phone=phone)
            db.add(user)

        user.name = name.strip()
        user.age = age
        db.commit()
        db.refresh(user)

        return {
            "success": True,
            "user": serialize_user(user),
            "message": "Profile created successfully" if created else "Profile updated successfully",
        }

    @staticmethod
    def accept_terms(db: Session, raw_phone: str, accepted: bool) -> Dict[str, Any]:
        if accepted is not True:
            raise TermsNotAccepted()

        phone = normalize_phone(raw_phone)
        user = UserService.get(db, phone)
        if user is None:
            raise UserNotFound()

        user.terms_accepted = True
        db.commit()
        db.refresh(user)
        return {"success": True, "user": serialize_user(user)}

    @staticmethod
    def mark_opted_in(db: Session, raw_phone: str) -> bool:
        """Flag an existing user as opted in to WhatsApp. Unknown numbers are ignored."""
        phone = normalize_phone(raw_phone)
        user = UserService.get(db, phone)
        if user is None:
            logger.info("Opt-in webhook for unknown number %s", phone)
            return False
        user.is_opted_in = True
        db.commit()
        return True
