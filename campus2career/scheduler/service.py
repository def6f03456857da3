"""Scheduler service for periodic repair passes."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from campus2career.logging import get_logger
from campus2career.reconciler.repair import RepairJob, RepairSummary

logger = get_logger(__name__, component="scheduler")

JOB_ID = "repair-pass"


class SchedulerService:
    """
    Wraps APScheduler to run the repair job at a fixed interval.

    Runs in a BackgroundScheduler thread so the API server keeps the main
    thread. A failing pass is logged and the next one still runs.
    """

    def __init__(
        self,
        repair_job: RepairJob,
        interval_minutes: int,
        first_run_delay_seconds: int = 60,
    ):
        """
        Initialize the scheduler service.

        Args:
            repair_job: Job whose ``run`` is invoked on each tick
            interval_minutes: Minutes between passes
            first_run_delay_seconds: Delay before the first pass after startup
        """
        self.repair_job = repair_job
        self.interval_minutes = interval_minutes
        self.first_run_delay_seconds = first_run_delay_seconds

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Never overlap passes
                "coalesce": True,  # Collapse missed runs into one
                "misfire_grace_time": interval_minutes * 60,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the repair job and start the scheduler thread."""
        trigger = IntervalTrigger(minutes=self.interval_minutes, timezone=timezone.utc)
        next_run = datetime.now(timezone.utc) + timedelta(seconds=self.first_run_delay_seconds)
        self.scheduler.add_job(
            func=self.run_once,
            trigger=trigger,
            id=JOB_ID,
            name="Application repair pass",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_minutes} minutes",
            extra={
                "event": "scheduler.started",
                "interval_minutes": self.interval_minutes,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for a running pass to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def run_once(self) -> Optional[RepairSummary]:
        """
        Run one repair pass in the current thread.

        Returns:
            The pass summary, or None if the pass raised
        """
        try:
            return self.repair_job.run()
        except Exception as e:
            logger.error(
                f"Repair pass failed: {e}",
                exc_info=True,
                extra={"event": "repair.run.failed", "error_type": type(e).__name__},
            )
            return None

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
