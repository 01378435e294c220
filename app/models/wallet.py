from sqlalchemy import Column, String, Integer, DateTime, CheckConstraint
from app.core.database import Base
from app.core.timezone import get_ist_now

class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(10), nullable=False, unique=True, index=True)
    # Minor currency unit (paise)
    balance = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)
