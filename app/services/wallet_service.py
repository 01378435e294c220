"""
Wallet ledger. credit and debit are the only writers of ``Wallet.balance``.

Both are single conditional statements so the non-negative invariant holds
even if two processes race; the per-identity lock only serializes callers
within this process.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InsufficientFunds, InvalidAmount, WalletNotFound
from app.core.locks import KeyedLock, identity_locks
from app.core.timezone import get_ist_now
from app.models.wallet import Wallet

logger = logging.getLogger(__name__)


def wallet_lock_key(phone: str) -> str:
    return f"wallet:{phone}"


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount()


class WalletService:

    locks: KeyedLock = identity_locks

    @staticmethod
    def balance(db: Session, phone: str) -> int:
        wallet = db.query(Wallet).filter(Wallet.phone == phone).first()
        return wallet.balance if wallet else 0

    @staticmethod
    def _increment(db: Session, phone: str, amount: int) -> int:
        result = db.execute(
            update(Wallet)
            .where(Wallet.phone == phone)
            .values(balance=Wallet.balance + amount, updated_at=get_ist_now())
        )
        return result.rowcount

    @classmethod
    def credit(cls, db: Session, phone: str, amount: int) -> int:
        """Add funds, creating the wallet at zero first if needed. Returns the new balance."""
        _require_positive(amount)

        with cls.locks.hold(wallet_lock_key(phone)):
            if not cls._increment(db, phone, amount):
                db.add(Wallet(phone=phone, balance=amount))
                try:
                    db.flush()
                except IntegrityError:
                    # Another process created it between the UPDATE and the INSERT
                    db.rollback()
                    cls._increment(db, phone, amount)
            db.commit()
            balance = cls.balance(db, phone)

        logger.info("Credited %s to %s (balance %s)", amount, phone, balance)
        return balance

    @classmethod
    def credit_existing(cls, db: Session, phone: str, amount: int) -> int:
        """Prize payout: only wallets that already exist can receive it."""
        _require_positive(amount)

        with cls.locks.hold(wallet_lock_key(phone)):
            if not cls._increment(db, phone, amount):
                raise WalletNotFound()
            db.commit()
            balance = cls.balance(db, phone)

        logger.info("Prize %s paid to %s (balance %s)", amount, phone, balance)
        return balance

    @staticmethod
    def debit_unlocked(db: Session, phone: str, amount: int) -> None:
        """Conditional debit without locking or committing, for use inside a larger transaction."""
        result = db.execute(
            update(Wallet)
            .where(Wallet.phone == phone, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=get_ist_now())
        )
        if result.rowcount != 1:
            raise InsufficientFunds()

    @classmethod
    def debit(cls, db: Session, phone: str, amount: int) -> int:
        """Remove funds or reject the whole debit. Returns the new balance."""
        _require_positive(amount)

        with cls.locks.hold(wallet_lock_key(phone)):
            cls.debit_unlocked(db, phone, amount)
            db.commit()
            balance = cls.balance(db, phone)

        logger.info("Debited %s from %s (balance %s)", amount, phone, balance)
        return balance
