from sqlalchemy import Column, String, Integer, DateTime, Boolean
from app.core.database import Base
from app.core.timezone import get_ist_now

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(10), nullable=False, unique=True, index=True)
    name = Column(String(128), nullable=True)
    age = Column(Integer, nullable=True)
    terms_accepted = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    is_opted_in = Column(Boolean, default=False, nullable=False)
    last_otp_request = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)

    @property
    def profile_complete(self) -> bool:
        return bool(self.name) and self.age is not None
