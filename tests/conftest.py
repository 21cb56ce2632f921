from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.db import Base, build_engine, get_db
from app.deps.settings import get_settings_policy
from app.models.voucher import Voucher  # noqa: F401
from app.models.wallet import Wallet  # noqa: F401
from app.models.wallet_settings import WalletSettings  # noqa: F401
from app.models.wallet_transaction import WalletTransaction  # noqa: F401
from app.services import wallet_service
from app.services.settings_service import SettingsPolicy, WalletSettingsSnapshot
from app.services.wallet_store import utcnow


USER_ID = 7
ADMIN_ID = 1


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'wallet.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return WalletSettingsSnapshot(
        first_purchase_coins=50,
        coin_to_currency_ratio=Decimal("1"),
        min_order_value=Decimal("0"),
        max_redeemable_coins=100,
        coin_expiry_days=90,
        max_usage_percentage=Decimal("100"),
        min_cart_value=Decimal("0"),
        applicable_categories=frozenset(),
        is_enabled=True,
    )


@pytest.fixture
def funded_wallet(db, settings):
    """Wallet for USER_ID holding 50 coins from one CREDIT lot."""
    return wallet_service.credit(db, USER_ID, 50, "ORDER", reference_id=100, settings=settings)


@pytest.fixture
def stale_credit(db, settings):
    """A 50-coin lot credited 91 days ago, i.e. one day past its 90-day expiry."""
    return wallet_service.credit(
        db,
        USER_ID,
        50,
        "ORDER",
        reference_id=100,
        settings=settings,
        now=utcnow() - timedelta(days=91),
    )


@pytest.fixture
def policy():
    return SettingsPolicy(ttl_seconds=0)


@pytest.fixture
def client(session_factory, policy):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings_policy] = lambda: policy

    # not used as a context manager: startup would create tables on the default engine
    yield TestClient(app)

    app.dependency_overrides.clear()


def user_headers(user_id: int = USER_ID) -> dict:
    return {"X-User-Id": str(user_id)}


def admin_headers(user_id: int = ADMIN_ID) -> dict:
    return {"X-User-Id": str(user_id), "X-User-Role": "admin"}
