from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class WalletOut(BaseModel):
    id: int
    user_id: int

    balance: int
    redeemed_balance: int
    lifetime_earned: int
    lifetime_redeemed: int

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletTransactionOut(BaseModel):
    id: int
    wallet_id: int

    amount: int
    transaction_type: str
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    description: Optional[str] = None

    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletTransactionPage(BaseModel):
    transactions: List[WalletTransactionOut]
    total: int


class WalletPage(BaseModel):
    wallets: List[WalletOut]
    total: int


class CreditRequest(BaseModel):
    user_id: int
    amount: int = Field(gt=0)
    reference_type: str = Field(min_length=1, max_length=50)
    reference_id: Optional[int] = None
    description: Optional[str] = None


class FirstPurchaseRequest(BaseModel):
    user_id: int
    order_id: int


class RefundRequest(BaseModel):
    user_id: int
    amount: int = Field(gt=0)
    reference_type: str = Field(default="ORDER", min_length=1, max_length=50)
    reference_id: Optional[int] = None
    description: Optional[str] = None


class CreditOut(BaseModel):
    credited: bool
    wallet: Optional[WalletOut] = None


class RedeemRequest(BaseModel):
    amount: int = Field(gt=0)
    reference_type: Optional[str] = Field(default=None, max_length=50)
    reference_id: Optional[int] = None
    description: Optional[str] = None
    order_value: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[str] = None


class RedeemOut(BaseModel):
    wallet: WalletOut
    discount_amount: Decimal
    voucher_code: str


class SpendRedeemedRequest(BaseModel):
    amount: int = Field(gt=0)
    order_id: int
    description: Optional[str] = None


class ManualAdjustmentRequest(BaseModel):
    user_id: int = Field(gt=0)
    amount: int
    reason: str = Field(min_length=3)

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Amount cannot be zero")
        return v


class ExpirySweepOut(BaseModel):
    processed_count: int
    expired_transactions: int
    failed: int
    message: str
