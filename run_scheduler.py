#!/usr/bin/env python3
"""
Standalone runner for the loterias sync scheduler.

Runs the daily synchronization without the HTTP API (e.g. under systemd or
supervisor, next to a read-only API process sharing the same DB_PATH).

Usage:
    python run_scheduler.py              # Bootstrap if needed, then run the daily schedule
    python run_scheduler.py --bootstrap  # Build the store if it does not exist and exit
    python run_scheduler.py --sync-now   # Run one incremental pass and exit
    python run_scheduler.py --snapshot   # Refresh the latest-results snapshot and exit
    python run_scheduler.py --status     # Print store and schedule status and exit
"""
import asyncio
import argparse
import json
import signal
import sys

from loterias.core.config import settings
from loterias.core.logging import configure_logging, get_logger
from loterias.core.scheduler import SyncScheduler
from loterias.services.store import JsonDocumentStore, StoreReadError, WindowStore
from loterias.services.sync.adapters.caixa_api_adapter import CaixaApiAdapter
from loterias.services.sync.orchestrator import SyncOrchestrator
from loterias.services.sync.snapshot import LatestSnapshotService

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the sync scheduler."""

    def __init__(self):
        self.adapter = CaixaApiAdapter(
            base_url=settings.CAIXA_API_BASE,
            timeout=settings.FETCH_TIMEOUT,
            max_connections=settings.FETCH_CONCURRENCY
        )
        self.orchestrator = SyncOrchestrator(
            store=WindowStore(settings.DB_PATH),
            adapter=self.adapter,
            window_size=settings.CONTESTS_TO_STORE,
            max_concurrency=settings.FETCH_CONCURRENCY,
            pass_timeout=settings.SYNC_PASS_TIMEOUT
        )
        self.snapshot_service = LatestSnapshotService(
            JsonDocumentStore(settings.SNAPSHOT_PATH), self.adapter
        )
        self.scheduler = SyncScheduler(
            orchestrator=self.orchestrator,
            snapshot_service=self.snapshot_service if settings.SNAPSHOT_ENABLED else None,
            hour=settings.SYNC_CRON_HOUR,
            minute=settings.SYNC_CRON_MINUTE,
            timezone=settings.SCHEDULER_TIMEZONE,
            misfire_grace_time=settings.MISFIRE_GRACE_TIME
        )
        self._shutdown = asyncio.Event()

    async def start(self):
        """Bootstrap if needed, start the scheduler and run until shutdown."""
        logger.info("Starting scheduler runner...")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        try:
            await self.orchestrator.bootstrap()
            if settings.SNAPSHOT_ENABLED:
                await self.snapshot_service.refresh()

            await self.scheduler.start()
            logger.info("Scheduler is now running, press Ctrl+C to stop")

            await self._shutdown.wait()
        finally:
            await self.scheduler.stop()
            await self.adapter.close()
            logger.info("Scheduler runner stopped")

    async def run_once(self, action: str) -> dict:
        """Run a single pass ("bootstrap", "sync" or "snapshot") and return its result."""
        try:
            if action == "bootstrap":
                return await self.orchestrator.bootstrap()
            if action == "sync":
                return await self.orchestrator.sync()
            return await self.snapshot_service.refresh()
        finally:
            await self.adapter.close()

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self._shutdown.set()


def print_status() -> bool:
    """Print store contents summary and the configured schedule."""
    store = WindowStore(settings.DB_PATH)

    print(f"Store: {store.path}")
    try:
        document = store.read()
    except StoreReadError as e:
        print(f"   Not readable: {e}")
        ok = False
    else:
        for game, window in document.items():
            if window:
                print(f"   • {game}: {len(window)} contests (#{window[0]['numero']} - #{window[-1]['numero']})")
            else:
                print(f"   • {game}: empty")
        ok = True

    print()
    print(
        f"Schedule: daily at {settings.SYNC_CRON_HOUR:02d}:{settings.SYNC_CRON_MINUTE:02d} "
        f"{settings.SCHEDULER_TIMEZONE} (window size {settings.CONTESTS_TO_STORE})"
    )
    return ok


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the loterias contest sync scheduler'
    )

    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        '--bootstrap',
        action='store_true',
        help='Build the store if it does not exist yet, then exit'
    )
    group.add_argument(
        '--sync-now',
        action='store_true',
        help='Run one incremental sync pass, then exit'
    )
    group.add_argument(
        '--snapshot',
        action='store_true',
        help='Refresh the latest-results snapshot, then exit'
    )
    group.add_argument(
        '--status',
        action='store_true',
        help='Print store and schedule status, then exit'
    )

    args = parser.parse_args()

    if args.status:
        return 0 if print_status() else 1

    runner = SchedulerRunner()

    action = None
    if args.bootstrap:
        action = "bootstrap"
    elif args.sync_now:
        action = "sync"
    elif args.snapshot:
        action = "snapshot"

    if action:
        result = asyncio.run(runner.run_once(action))
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0 if result.get("success") else 1

    try:
        asyncio.run(runner.start())
    except Exception as e:
        logger.error(f"Scheduler error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
