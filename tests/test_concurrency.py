import threading

import pytest

from app.models.voucher import Voucher
from app.models.wallet import Wallet
from app.services import wallet_service
from app.services.errors import InsufficientFunds, StorageFailure
from app.services.voucher_service import issue_voucher

from conftest import USER_ID


def _run_concurrently(session_factory, n, fn):
    barrier = threading.Barrier(n)
    outcomes = []
    lock = threading.Lock()

    def worker(i):
        session = session_factory()
        try:
            barrier.wait()
            result = fn(session, i)
            outcome = ("ok", result)
        except Exception as e:
            outcome = ("error", e)
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    return outcomes


class TestConcurrentRedemption:
    def test_only_one_full_balance_redemption_succeeds(self, db, session_factory, settings, funded_wallet):
        def redeem_all(session, i):
            return wallet_service.redeem(session, USER_ID, 50, settings=settings).voucher_code

        outcomes = _run_concurrently(session_factory, 6, redeem_all)

        successes = [r for kind, r in outcomes if kind == "ok"]
        errors = [r for kind, r in outcomes if kind == "error"]
        assert len(outcomes) == 6
        assert len(successes) == 1
        assert all(isinstance(e, InsufficientFunds) for e in errors)

        db.expire_all()
        wallet = db.query(Wallet).filter(Wallet.user_id == USER_ID).one()
        assert wallet.balance == 0
        assert wallet.redeemed_balance == 50
        assert db.query(Voucher).count() == 1

    def test_first_purchase_bonus_paid_once_under_race(self, db, session_factory, settings):
        def reward(session, i):
            return wallet_service.first_purchase_reward(session, USER_ID, 100 + i, settings=settings) is not None

        outcomes = _run_concurrently(session_factory, 5, reward)

        assert sorted(r for _, r in outcomes) == [False, False, False, False, True]
        db.expire_all()
        assert db.query(Wallet).filter(Wallet.user_id == USER_ID).one().balance == 50

    def test_concurrent_redemptions_get_distinct_codes(self, db, session_factory, settings):
        for user_id in range(10, 18):
            wallet_service.credit(db, user_id, 20, "ORDER", settings=settings)

        def redeem(session, i):
            return wallet_service.redeem(session, 10 + i, 5, settings=settings).voucher_code

        outcomes = _run_concurrently(session_factory, 8, redeem)

        codes = [r for kind, r in outcomes if kind == "ok"]
        assert len(codes) == 8
        assert len(set(codes)) == 8


class TestVoucherCodes:
    def test_collision_retries_with_new_code(self, db):
        codes = iter(["WALLET-AAAAAAAAAAAA", "WALLET-AAAAAAAAAAAA", "WALLET-BBBBBBBBBBBB"])

        first = issue_voucher(db, user_id=USER_ID, discount_amount=10, code_factory=lambda: next(codes))
        second = issue_voucher(db, user_id=USER_ID, discount_amount=10, code_factory=lambda: next(codes))
        db.commit()

        assert first.code == "WALLET-AAAAAAAAAAAA"
        assert second.code == "WALLET-BBBBBBBBBBBB"

    def test_gives_up_after_repeated_collisions(self, db):
        issue_voucher(db, user_id=USER_ID, discount_amount=10, code_factory=lambda: "WALLET-AAAAAAAAAAAA")

        with pytest.raises(StorageFailure):
            issue_voucher(db, user_id=USER_ID, discount_amount=10, code_factory=lambda: "WALLET-AAAAAAAAAAAA")
