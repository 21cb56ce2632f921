from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.services.settings_service import WalletSettingsSnapshot


class WalletSettingsUpdate(BaseModel):
    first_purchase_coins: Optional[int] = Field(default=None, ge=0)
    coin_to_currency_ratio: Optional[Decimal] = Field(default=None, ge=0)
    min_order_value: Optional[Decimal] = Field(default=None, ge=0)
    max_redeemable_coins: Optional[int] = Field(default=None, ge=0)
    coin_expiry_days: Optional[int] = Field(default=None, ge=0)
    max_usage_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    min_cart_value: Optional[Decimal] = Field(default=None, ge=0)
    applicable_categories: Optional[str] = None
    is_enabled: Optional[bool] = None


class WalletSettingsOut(BaseModel):
    first_purchase_coins: int
    coin_to_currency_ratio: Decimal
    min_order_value: Decimal
    max_redeemable_coins: int
    coin_expiry_days: int
    max_usage_percentage: Decimal
    min_cart_value: Decimal
    applicable_categories: List[str]
    is_enabled: bool

    @classmethod
    def from_snapshot(cls, snapshot: WalletSettingsSnapshot) -> "WalletSettingsOut":
        return cls(
            first_purchase_coins=snapshot.first_purchase_coins,
            coin_to_currency_ratio=snapshot.coin_to_currency_ratio,
            min_order_value=snapshot.min_order_value,
            max_redeemable_coins=snapshot.max_redeemable_coins,
            coin_expiry_days=snapshot.coin_expiry_days,
            max_usage_percentage=snapshot.max_usage_percentage,
            min_cart_value=snapshot.min_cart_value,
            applicable_categories=sorted(snapshot.applicable_categories),
            is_enabled=snapshot.is_enabled,
        )
