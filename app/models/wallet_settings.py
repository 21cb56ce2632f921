from decimal import Decimal

from sqlalchemy import Boolean, Column, Integer, Numeric, Text, TIMESTAMP
from sqlalchemy.sql import func
from app.db import Base


DEFAULT_SETTINGS = {
    "first_purchase_coins": 3000,
    "coin_to_currency_ratio": Decimal("1.00"),
    "min_order_value": Decimal("500.00"),
    "max_redeemable_coins": 200,
    "coin_expiry_days": 90,
    "max_usage_percentage": Decimal("20.00"),
    "min_cart_value": Decimal("0.00"),
    "applicable_categories": None,
    "is_enabled": True,
}


class WalletSettings(Base):
    __tablename__ = "wallet_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    first_purchase_coins = Column(Integer, nullable=False, default=DEFAULT_SETTINGS["first_purchase_coins"])
    coin_to_currency_ratio = Column(Numeric(10, 2), nullable=False, default=DEFAULT_SETTINGS["coin_to_currency_ratio"])
    min_order_value = Column(Numeric(12, 2), nullable=False, default=DEFAULT_SETTINGS["min_order_value"])
    max_redeemable_coins = Column(Integer, nullable=False, default=DEFAULT_SETTINGS["max_redeemable_coins"])
    coin_expiry_days = Column(Integer, nullable=False, default=DEFAULT_SETTINGS["coin_expiry_days"])

    # max % of the order value payable with coins
    max_usage_percentage = Column(Numeric(5, 2), nullable=False, default=DEFAULT_SETTINGS["max_usage_percentage"])
    min_cart_value = Column(Numeric(12, 2), nullable=False, default=DEFAULT_SETTINGS["min_cart_value"])
    # comma-separated category names, NULL/empty = every category
    applicable_categories = Column(Text, nullable=True)

    is_enabled = Column(Boolean, nullable=False, default=DEFAULT_SETTINGS["is_enabled"])

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
