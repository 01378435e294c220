from pydantic import BaseModel, Field

class CreateOrderRequest(BaseModel):
    # paise
    amount: int = Field(gt=0)


class CreditRequest(BaseModel):
    phone: str = Field(min_length=1)
    amount: int = Field(gt=0)


class PrizeRequest(BaseModel):
    phone: str = Field(min_length=1)
    prize: int = Field(gt=0)


class BalanceResponse(BaseModel):
    balance: int


class MoneyAddedResponse(BaseModel):
    message: str
    balance: int
