"""
Update Scheduler - Cron and Startup Execution

Runs the price update cycle on a cron schedule with APScheduler. Cycle errors
are logged here and go no further; the next scheduled run is the retry.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from process import CycleError, UpdateOrchestrator

logger = logging.getLogger(__name__)

JOB_ID = "carbon_price_update"
INITIAL_JOB_ID = "carbon_price_initial_update"


class UpdateScheduler:
    """Periodic trigger for ``UpdateOrchestrator.run_update_cycle``."""

    def __init__(self, orchestrator: UpdateOrchestrator, cron: str = "0 0,12 * * *") -> None:
        self.orchestrator = orchestrator
        self.cron = cron
        self.scheduler: BackgroundScheduler | None = None

    def execute_update(self) -> None:
        logger.info("Executing scheduled update")
        try:
            self.orchestrator.run_update_cycle()
        except CycleError as err:
            logger.error("Scheduled update failed (stage=%s): %s", err.stage, err)

    def start(self, run_immediately: bool = False) -> None:
        if self.scheduler is not None:
            return

        trigger = CronTrigger.from_crontab(self.cron)
        self.scheduler = BackgroundScheduler()
        self.scheduler.add_job(
            self.execute_update,
            trigger=trigger,
            id=JOB_ID,
            name="Periodic carbon price update",
            replace_existing=True,
            coalesce=True,
        )
        if run_immediately:
            self.scheduler.add_job(self.execute_update, id=INITIAL_JOB_ID, name="Initial carbon price update")

        self.scheduler.start()
        job = self.scheduler.get_job(JOB_ID)
        logger.info("Scheduler started (cron=%s, next_run=%s)", self.cron, getattr(job, "next_run_time", None))

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler is None:
            return
        logger.info("Shutting down scheduler")
        self.scheduler.shutdown(wait=wait)
        self.scheduler = None
        logger.info("Scheduler shutdown complete")
