"""Scheduler entry point: python -m rentalhub.scheduler"""
import signal
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from rentalhub.core.config import settings
from rentalhub.core.logging import setup_logging, get_logger
from rentalhub.scheduler.subscription_sweep import run_subscription_sweep

setup_logging(debug=settings.DEBUG, service="rentalhub-scheduler")
logger = get_logger("scheduler")

scheduler = BlockingScheduler(timezone=settings.SCHEDULER_TIMEZONE)


def signal_handler(sig, frame):
    logger.info("Scheduler received stop signal")
    scheduler.shutdown(wait=False)
    sys.exit(0)


signal.signal(signal.SIGTERM, signal_handler)
signal.signal(signal.SIGINT, signal_handler)


def main():
    logger.info("Scheduler starting")

    # 00:00 local: expire ended plans, activate due renewals
    scheduler.add_job(
        run_subscription_sweep,
        CronTrigger(hour=0, minute=0, timezone=settings.SCHEDULER_TIMEZONE),
        id="subscription_sweep",
        max_instances=1,
        coalesce=True,
    )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
