from decimal import Decimal

import pytest

from app.models.wallet_settings import DEFAULT_SETTINGS, WalletSettings
from app.services.errors import WalletValidationError
from app.services.settings_service import (
    SettingsPolicy,
    WalletSettingsSnapshot,
    parse_categories,
    validate_settings_changes,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSettingsPolicy:
    def test_defaults_created_on_first_read(self, db):
        snapshot = SettingsPolicy().get(db)

        assert snapshot.first_purchase_coins == 3000
        assert snapshot.coin_to_currency_ratio == Decimal("1.00")
        assert snapshot.max_redeemable_coins == 200
        assert snapshot.coin_expiry_days == 90
        assert snapshot.max_usage_percentage == Decimal("20.00")
        assert snapshot.applicable_categories == frozenset()
        assert snapshot.is_enabled is True
        assert db.query(WalletSettings).count() == 1

    def test_update_persists_and_parses_categories(self, db):
        policy = SettingsPolicy()

        snapshot = policy.update(db, {"max_redeemable_coins": 500, "applicable_categories": " Fashion, books ,,"})

        assert snapshot.max_redeemable_coins == 500
        assert snapshot.applicable_categories == frozenset({"fashion", "books"})
        row = db.query(WalletSettings).one()
        assert row.applicable_categories == "Fashion,books"

    def test_cached_until_ttl(self, db):
        clock = FakeClock()
        policy = SettingsPolicy(ttl_seconds=30, clock=clock)
        policy.get(db)

        row = db.query(WalletSettings).one()
        row.first_purchase_coins = 10
        db.commit()

        assert policy.get(db).first_purchase_coins == 3000
        clock.now += 31
        assert policy.get(db).first_purchase_coins == 10

    def test_update_invalidates_cache(self, db):
        policy = SettingsPolicy(ttl_seconds=3600, clock=FakeClock())
        policy.get(db)

        policy.update(db, {"is_enabled": False})

        assert policy.get(db).is_enabled is False

    def test_invalid_update_touches_nothing(self, db):
        policy = SettingsPolicy()
        policy.get(db)

        with pytest.raises(WalletValidationError):
            policy.update(db, {"max_redeemable_coins": 10, "max_usage_percentage": 101})

        db.expire_all()
        assert db.query(WalletSettings).one().max_redeemable_coins == 200


class TestSettingsValidation:
    @pytest.mark.parametrize(
        "changes",
        [
            {"first_purchase_coins": -1},
            {"coin_to_currency_ratio": -0.5},
            {"min_cart_value": "abc"},
            {"max_usage_percentage": 100.5},
            {"coin_expiry_days": 1.5},
            {"max_redeemable_coins": None},
            {"is_enabled": "yes"},
            {"applicable_categories": 12},
            {"no_such_field": 1},
        ],
    )
    def test_rejected(self, changes):
        with pytest.raises(WalletValidationError):
            validate_settings_changes(changes)

    def test_boundaries_accepted(self):
        clean = validate_settings_changes({"max_usage_percentage": 100, "min_cart_value": 0, "coin_expiry_days": 0})

        assert clean == {"max_usage_percentage": Decimal("100"), "min_cart_value": Decimal("0"), "coin_expiry_days": 0}

    def test_category_list_joined(self):
        assert validate_settings_changes({"applicable_categories": ["a", "b"]}) == {"applicable_categories": "a,b"}
        assert validate_settings_changes({"applicable_categories": " "}) == {"applicable_categories": None}


class TestCategoryEligibility:
    def test_empty_allows_everything(self):
        assert WalletSettingsSnapshot().is_category_eligible("anything")

    def test_restricted(self):
        snapshot = WalletSettingsSnapshot(applicable_categories=parse_categories("Fashion,Books"))

        assert snapshot.is_category_eligible("fashion")
        assert snapshot.is_category_eligible(" BOOKS ")
        assert not snapshot.is_category_eligible("toys")
        assert snapshot.is_category_eligible(None)


class TestDefaults:
    def test_snapshot_defaults_match_stored_defaults(self):
        snapshot = WalletSettingsSnapshot()

        for key, value in DEFAULT_SETTINGS.items():
            if key == "applicable_categories":
                assert snapshot.applicable_categories == parse_categories(value)
            else:
                assert getattr(snapshot, key) == value

    def test_bare_row_reads_back_as_default_snapshot(self, db):
        db.add(WalletSettings())
        db.commit()

        row = db.query(WalletSettings).one()

        assert WalletSettingsSnapshot.from_row(row) == WalletSettingsSnapshot()
