"""Standalone scheduler process running the hourly missed-session sweep."""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from filelock import FileLock

from cycleplan.config import get_settings
from cycleplan.database import SessionLocal, run_migrations
from cycleplan.logging_config import configure_logging
from cycleplan.services.adjustment_policy import AdjustmentPolicy
from cycleplan.services.check_in import run_check_in
from cycleplan.services.plan_store import SessionScheduleStore
from cycleplan.services.policy_config import PolicyConfig
from cycleplan.services.redistribution import RedistributionEngine


logger = logging.getLogger("scheduler")


def acquire_lock(lock_path: Path) -> FileLock:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    lock.acquire(timeout=0)
    return lock


def build_policy() -> AdjustmentPolicy:
    settings = get_settings()
    return AdjustmentPolicy(
        config=PolicyConfig.from_settings(settings),
        engine=RedistributionEngine.from_settings(settings),
    )


def list_active_accounts() -> list[str]:
    db = SessionLocal()
    try:
        return sorted({account_id for _, account_id in SessionScheduleStore(db).active_plan_refs()})
    finally:
        db.close()


def check_in_account(account_id: str, now: datetime, policy: AdjustmentPolicy) -> Optional[str]:
    """
    Run one account's check-in in its own database session.

    Returns:
        str: outcome kind ("redistribute", "reset", "none", "paused") or None when
        nothing changed or the account no longer has an active plan
    """
    db = SessionLocal()
    try:
        report = run_check_in(db, account_id, now, policy, max_retries=get_settings().check_in_max_retries)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    if report is None:
        return None
    if report.paused:
        return "paused"
    if report.outcome is not None:
        return report.outcome.kind
    return "detected" if report.detection.newly_missed else None


async def sweep_active_plans(now: Optional[datetime] = None) -> Dict[str, Optional[str]]:
    """
    Check in every account with an active plan.

    A failure for one account is logged and does not stop the sweep.

    Returns:
        dict: mapping account id -> outcome kind, or "error"
    """
    settings = get_settings()
    now = now or datetime.now()
    policy = build_policy()
    accounts = await asyncio.to_thread(list_active_accounts)
    semaphore = asyncio.Semaphore(settings.sweep_concurrency)
    results: Dict[str, Optional[str]] = {}

    async def _run(account_id: str) -> None:
        async with semaphore:
            try:
                results[account_id] = await asyncio.to_thread(check_in_account, account_id, now, policy)
            except Exception:
                logger.exception("Check-in failed for account=%s", account_id)
                results[account_id] = "error"

    await asyncio.gather(*(_run(account_id) for account_id in accounts))
    return results


async def run_hourly_job() -> None:
    start = datetime.now(timezone.utc)
    logger.info("Missed-session sweep started")

    try:
        results = await sweep_active_plans()
    except Exception:
        logger.exception("Missed-session sweep failed")
        return

    changed = {account_id: kind for account_id, kind in results.items() if kind}
    elapsed = (datetime.now(timezone.utc) - start).total_seconds()
    logger.info(
        "Missed-session sweep finished in %.2fs | accounts=%d | changed=%d | errors=%d",
        elapsed,
        len(results),
        len(changed),
        sum(1 for kind in results.values() if kind == "error"),
    )
    for account_id, kind in changed.items():
        logger.debug("Detail %s -> %s", account_id, kind)


async def run_once() -> None:
    await run_hourly_job()


async def main(run_now: bool) -> None:
    configure_logging()
    settings = get_settings()
    run_migrations()

    scheduler_log = settings.log_dir / "scheduler.log"
    if not any(isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", "") == str(scheduler_log) for h in logger.handlers):
        handler = logging.FileHandler(scheduler_log, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    lock_path = settings.scheduler_lock_file
    lock = acquire_lock(lock_path)
    logger.info("Acquired scheduler lock at %s", lock_path)
    try:
        if run_now:
            await run_once()
            return

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_hourly_job,
            "cron",
            minute=settings.scheduler_minute,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()

        logger.info(
            "Scheduler running (hourly at minute %02d). Press Ctrl+C to exit.",
            settings.scheduler_minute,
        )
        await asyncio.Event().wait()
    finally:
        lock.release()
        logger.info("Released scheduler lock at %s", lock_path)
        if lock_path.exists():
            lock_path.unlink()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run missed-session scheduler process")
    parser.add_argument("--run-now", action="store_true", help="Run one sweep immediately and exit")
    args = parser.parse_args()

    try:
        asyncio.run(main(run_now=args.run_now))
    except TimeoutError:
        logger.warning("Scheduler already running; exiting.")
