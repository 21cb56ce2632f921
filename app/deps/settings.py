import os

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.services.settings_service import SettingsPolicy, WalletSettingsSnapshot


settings_policy = SettingsPolicy(
    ttl_seconds=float(os.getenv("WALLET_SETTINGS_CACHE_TTL_SECONDS") or "30"),
)


def get_settings_policy() -> SettingsPolicy:
    return settings_policy


def get_wallet_settings(
    db: Session = Depends(get_db),
    policy: SettingsPolicy = Depends(get_settings_policy),
) -> WalletSettingsSnapshot:
    return policy.get(db)
