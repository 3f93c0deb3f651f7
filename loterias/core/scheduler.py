"""
Daily scheduler for the contest synchronization.

Jobs:
- contest_sync: incremental sync of every game's window
- latest_snapshot: refresh of the latest-results snapshot (optional)

Both run once a day at the configured local time. Missed fires are not caught
up: jobs live in memory only, so a run that falls while the process is down is
simply lost, and a fire delayed past ``misfire_grace_time`` is dropped.
Overlapping runs are prevented twice: ``max_instances=1`` on each job and the
orchestrator's own pass lock, which also covers manual triggers.

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
import logging
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from loterias.core import metrics
from loterias.services.sync.orchestrator import SyncOrchestrator
from loterias.services.sync.snapshot import LatestSnapshotService

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "contest_sync"
SNAPSHOT_JOB_ID = "latest_snapshot"


class SyncScheduler:
    """
    Scheduler for the daily synchronization jobs.

    All configuration comes in through the constructor.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        snapshot_service: Optional[LatestSnapshotService] = None,
        hour: int = 21,
        minute: int = 0,
        timezone: str = "America/Sao_Paulo",
        misfire_grace_time: int = 60
    ):
        self.orchestrator = orchestrator
        self.snapshot_service = snapshot_service
        self.hour = hour
        self.minute = minute
        self.timezone = timezone
        self.misfire_grace_time = misfire_grace_time

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler (must be called from a running event loop)."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting sync scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                'coalesce': True,  # Never run a job twice to make up for misses
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': self.misfire_grace_time
            }
        )

        self._schedule_contest_sync()
        if self.snapshot_service is not None:
            self._schedule_latest_snapshot()

        self.scheduler.start()
        self.running = True

        metrics.update_scheduler_metrics(True, len(self.scheduler.get_jobs()))
        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        # Do not block shutdown on a pass in flight; its write is atomic
        self.scheduler.shutdown(wait=False)
        self.running = False
        metrics.update_scheduler_metrics(False)
        logger.info("Scheduler stopped")

    def _cron_trigger(self) -> CronTrigger:
        return CronTrigger(hour=self.hour, minute=self.minute, timezone=self.timezone)

    def _schedule_contest_sync(self):
        """
        Schedule: incremental contest sync.

        Frequency: Daily at the configured time (default 21:00 America/Sao_Paulo)
        """
        self.scheduler.add_job(
            self.run_contest_sync,
            trigger=self._cron_trigger(),
            id=SYNC_JOB_ID,
            name='Sync Lottery Contests',
            replace_existing=True
        )
        logger.info(f"Scheduled: contest sync (daily {self.hour:02d}:{self.minute:02d} {self.timezone})")

    def _schedule_latest_snapshot(self):
        """
        Schedule: latest-results snapshot.

        Frequency: Daily at the same time as the contest sync
        """
        self.scheduler.add_job(
            self.run_latest_snapshot,
            trigger=self._cron_trigger(),
            id=SNAPSHOT_JOB_ID,
            name='Refresh Latest Results Snapshot',
            replace_existing=True
        )
        logger.info(f"Scheduled: latest snapshot (daily {self.hour:02d}:{self.minute:02d} {self.timezone})")

    async def run_contest_sync(self) -> Optional[Dict[str, Any]]:
        """
        Job body: one incremental pass. Errors are logged, never raised.

        While the store does not exist (e.g. the startup bootstrap failed or
        missed its deadline) the bootstrap is run instead of the sync.
        """
        try:
            if not self.orchestrator.store.exists():
                logger.warning("Store not initialized, running the bootstrap")
                result = await self.orchestrator.bootstrap()
                if not result["success"] or not self.orchestrator.store.exists():
                    logger.error(f"Bootstrap failed: {result.get('error')}")
                    return result
            result = await self.orchestrator.sync()
        except Exception as e:
            logger.exception(f"Contest sync failed: {e}")
            return None

        if result["success"]:
            logger.info(
                f"Contest sync: {result['new_contests']} new contest(s) "
                f"in {len(result['updated'])} game(s) ({result['duration_ms']}ms)"
            )
        elif not result.get("skipped"):
            logger.error(f"Contest sync failed: {result.get('error')}")
        return result

    async def run_latest_snapshot(self) -> Optional[Dict[str, Any]]:
        """Job body: refresh the latest-results snapshot. Errors are logged, never raised."""
        try:
            return await self.snapshot_service.refresh()
        except Exception as e:
            logger.exception(f"Latest snapshot refresh failed: {e}")
            return None

    def get_jobs(self) -> List[Dict[str, Any]]:
        """Scheduled jobs with their next run time."""
        if not self.running or self.scheduler is None:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self.scheduler.get_jobs()
        ]

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.get_jobs():
            logger.info(f"  • {job['name']} (id={job['id']}, next run: {job['next_run'] or 'pending'})")
