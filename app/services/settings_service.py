from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.wallet_settings import DEFAULT_SETTINGS, WalletSettings
from app.services.errors import StorageFailure, WalletValidationError


logger = logging.getLogger(__name__)


_INTEGER_FIELDS = {"first_purchase_coins", "max_redeemable_coins", "coin_expiry_days"}


def parse_categories(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(c.strip().lower() for c in raw.split(",") if c.strip())


@dataclass(frozen=True)
class WalletSettingsSnapshot:
    first_purchase_coins: int = DEFAULT_SETTINGS["first_purchase_coins"]
    coin_to_currency_ratio: Decimal = DEFAULT_SETTINGS["coin_to_currency_ratio"]
    min_order_value: Decimal = DEFAULT_SETTINGS["min_order_value"]
    max_redeemable_coins: int = DEFAULT_SETTINGS["max_redeemable_coins"]
    coin_expiry_days: int = DEFAULT_SETTINGS["coin_expiry_days"]
    max_usage_percentage: Decimal = DEFAULT_SETTINGS["max_usage_percentage"]
    min_cart_value: Decimal = DEFAULT_SETTINGS["min_cart_value"]
    # empty = every category is eligible
    applicable_categories: frozenset[str] = field(default_factory=frozenset)
    is_enabled: bool = DEFAULT_SETTINGS["is_enabled"]

    @classmethod
    def from_row(cls, row: WalletSettings) -> "WalletSettingsSnapshot":
        return cls(
            first_purchase_coins=int(row.first_purchase_coins),
            coin_to_currency_ratio=Decimal(str(row.coin_to_currency_ratio)),
            min_order_value=Decimal(str(row.min_order_value)),
            max_redeemable_coins=int(row.max_redeemable_coins),
            coin_expiry_days=int(row.coin_expiry_days),
            max_usage_percentage=Decimal(str(row.max_usage_percentage)),
            min_cart_value=Decimal(str(row.min_cart_value)),
            applicable_categories=parse_categories(row.applicable_categories),
            is_enabled=bool(row.is_enabled),
        )

    def is_category_eligible(self, category: str | None) -> bool:
        if not category or not self.applicable_categories:
            return True
        return category.strip().lower() in self.applicable_categories


def validate_settings_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize a partial settings update, raising WalletValidationError on bad input.
    """
    clean: dict[str, Any] = {}

    for key, value in changes.items():
        if key not in DEFAULT_SETTINGS:
            raise WalletValidationError(f"Unknown wallet setting: {key}")

        if key == "is_enabled":
            if not isinstance(value, bool):
                raise WalletValidationError("is_enabled must be a boolean")
            clean[key] = value
            continue

        if key == "applicable_categories":
            if value is None:
                clean[key] = None
                continue
            if isinstance(value, (list, tuple, set, frozenset)):
                value = ",".join(str(v) for v in value)
            if not isinstance(value, str):
                raise WalletValidationError("applicable_categories must be a comma-separated string")
            names = [c.strip() for c in value.split(",") if c.strip()]
            clean[key] = ",".join(names) or None
            continue

        if value is None or isinstance(value, bool):
            raise WalletValidationError(f"{key} must be a number")

        if key in _INTEGER_FIELDS:
            try:
                number = Decimal(str(value))
            except InvalidOperation:
                raise WalletValidationError(f"{key} must be an integer")
            if number != number.to_integral_value():
                raise WalletValidationError(f"{key} must be an integer")
            if number < 0:
                raise WalletValidationError(f"{key} must be non-negative")
            clean[key] = int(number)
            continue

        try:
            number = Decimal(str(value))
        except InvalidOperation:
            raise WalletValidationError(f"{key} must be a number")
        if not number.is_finite() or number < 0:
            raise WalletValidationError(f"{key} must be non-negative")
        if key == "max_usage_percentage" and number > 100:
            raise WalletValidationError("max_usage_percentage must be between 0 and 100")
        clean[key] = number

    return clean


class SettingsPolicy:
    """
    Read-through accessor over the wallet_settings singleton.

    Snapshots are cached for ``ttl_seconds``; ``update`` invalidates the cache so
    the change is seen by the next read in this process.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: WalletSettingsSnapshot | None = None
        self._cached_at: float | None = None

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_at = None

    def get(self, db: Session) -> WalletSettingsSnapshot:
        with self._lock:
            if self._cached is not None and self._cached_at is not None:
                if self._clock() - self._cached_at < self.ttl_seconds:
                    return self._cached

        snapshot = WalletSettingsSnapshot.from_row(_load_or_create_row(db))

        with self._lock:
            self._cached = snapshot
            self._cached_at = self._clock()
        return snapshot

    def update(self, db: Session, changes: dict[str, Any]) -> WalletSettingsSnapshot:
        clean = validate_settings_changes(changes)

        try:
            row = _load_or_create_row(db)
            for k, v in clean.items():
                setattr(row, k, v)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("wallet settings update failed")
            raise StorageFailure("Wallet settings could not be saved, please retry") from e

        self.invalidate()
        snapshot = WalletSettingsSnapshot.from_row(row)
        logger.info("wallet settings updated", extra={"fields": sorted(clean)})
        return snapshot


def _load_or_create_row(db: Session) -> WalletSettings:
    row = db.query(WalletSettings).order_by(WalletSettings.id.asc()).first()
    if row:
        return row

    row = WalletSettings(**DEFAULT_SETTINGS)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("wallet settings initialized with defaults")
    return row
