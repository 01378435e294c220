from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.admin_auth import get_current_admin
from app.core.database import get_db
from app.core.phone import normalize_phone, require_identity
from app.schemas.wallet import (
    BalanceResponse,
    CreateOrderRequest,
    CreditRequest,
    MoneyAddedResponse,
    PrizeRequest,
)
from app.services.payment_service import create_order
from app.services.wallet_service import WalletService

router = APIRouter(prefix="/api/v1/wallet", tags=["wallet"])


@router.post("/create-order")
def create_payment_order(payload: CreateOrderRequest):
    return create_order(payload.amount)


@router.post("/add", response_model=MoneyAddedResponse, dependencies=[Depends(get_current_admin)])
def add_money(payload: CreditRequest, db: Session = Depends(get_db)):
    """Credit a wallet after the payment provider confirms the top-up."""
    balance = WalletService.credit(db, require_identity(payload.phone), payload.amount)
    return MoneyAddedResponse(message="Money added", balance=balance)


@router.get("/balance/{phone}", response_model=BalanceResponse)
def get_balance(phone: str, db: Session = Depends(get_db)):
    return BalanceResponse(balance=WalletService.balance(db, normalize_phone(phone)))


@router.post("/add-prize", response_model=MoneyAddedResponse, dependencies=[Depends(get_current_admin)])
def add_prize(payload: PrizeRequest, db: Session = Depends(get_db)):
    balance = WalletService.credit_existing(db, normalize_phone(payload.phone), payload.prize)
    return MoneyAddedResponse(message="Prize added", balance=balance)
