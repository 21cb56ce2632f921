from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from croniter import croniter

from app.db import SessionLocal
from app.services.expiry_service import run_expiry_sweep


logger = logging.getLogger(__name__)


DEFAULT_EXPIRY_CRON = "0 * * * *"


def _utcnow() -> datetime:
    # Keep naive UTC timestamps to match existing DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo("UTC"))


def _to_utc_naive(dt: datetime) -> datetime:
    return _as_utc_aware(dt).replace(tzinfo=None)


def compute_next_run_at(*, base_utc: datetime, cron_expr: str, tz_name: str = "UTC") -> datetime:
    if not cron_expr:
        raise ValueError("cron expression is required")
    if not croniter.is_valid(cron_expr):
        raise ValueError(f"Invalid cron expression: {cron_expr}")

    tz = ZoneInfo(tz_name or "UTC")
    base_local = _as_utc_aware(base_utc).astimezone(tz)
    it = croniter(cron_expr, base_local)
    next_local: datetime = it.get_next(datetime)
    return _to_utc_naive(next_local)


def run_expiry_scheduler_loop(
    *,
    cron_expr: str = DEFAULT_EXPIRY_CRON,
    tz_name: str = "UTC",
    worker_id: str | None = None,
    max_sleep_seconds: int = 300,
    session_factory=SessionLocal,
    sleep=time.sleep,
    clock=_utcnow,
    max_runs: int | None = None,
) -> int:
    """
    Run the coin expiry sweep on a cron cadence. Returns the number of sweeps
    executed (only reached when ``max_runs`` is set).
    """
    if worker_id is None:
        worker_id = os.getenv("WALLET_EXPIRY_WORKER_ID") or os.getenv("HOSTNAME") or "worker"

    logger.info(
        "coin expiry scheduler started",
        extra={"worker_id": worker_id, "cron": cron_expr, "timezone": tz_name},
    )

    runs = 0
    next_run_at = compute_next_run_at(base_utc=clock(), cron_expr=cron_expr, tz_name=tz_name)

    while max_runs is None or runs < max_runs:
        now = clock()

        if now < next_run_at:
            sleep_for = min(max_sleep_seconds, max(1, int((next_run_at - now).total_seconds())))
            logger.debug(
                "expiry sweep not due; sleeping",
                extra={"sleep_for_seconds": sleep_for, "next_run_at": next_run_at.isoformat()},
            )
            sleep(sleep_for)
            continue

        db = session_factory()
        try:
            stats = run_expiry_sweep(db, now=now)
            logger.info(
                "expiry sweep success",
                extra={
                    "worker_id": worker_id,
                    "expired_coins": stats.expired_coins,
                    "expired_transactions": stats.expired_transactions,
                    "failed": stats.failed,
                },
            )
        except Exception:
            # keep moving next_run_at forward to avoid a tight retry loop
            logger.exception("expiry sweep failed", extra={"worker_id": worker_id})
        finally:
            db.close()

        runs += 1
        next_run_at = compute_next_run_at(base_utc=now, cron_expr=cron_expr, tz_name=tz_name)

    return runs


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL") or "INFO")

    run_expiry_scheduler_loop(
        cron_expr=os.getenv("WALLET_EXPIRY_CRON") or DEFAULT_EXPIRY_CRON,
        tz_name=os.getenv("WALLET_EXPIRY_TIMEZONE") or "UTC",
        max_sleep_seconds=int(os.getenv("WALLET_EXPIRY_MAX_SLEEP_SECONDS") or "300"),
    )


if __name__ == "__main__":
    main()
