"""Sync API routes for synchronization health and manual runs.

Provides endpoints for:
- Sync status (last passes, running flag, scheduled jobs)
- Manual trigger of one incremental pass
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from loterias.api.dependencies import get_orchestrator, get_sync_scheduler
from loterias.core.scheduler import SyncScheduler
from loterias.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status")
async def get_sync_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    scheduler: Optional[SyncScheduler] = Depends(get_sync_scheduler)
) -> Dict:
    """
    Get synchronization status.

    Returns:
    - Whether a pass is running and whether the store exists
    - Last bootstrap and sync results
    - Scheduler state and next run times
    """
    status = orchestrator.get_sync_status()
    status["scheduler"] = {
        "running": bool(scheduler and scheduler.running),
        "jobs": scheduler.get_jobs() if scheduler else [],
    }
    return status


@router.post("/run")
async def trigger_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
) -> Dict:
    """
    Manually run one incremental sync pass and wait for its result.

    Returns 409 if another pass is already running and 500 if the pass
    failed (store unreadable or deadline exceeded).
    """
    result = await orchestrator.sync()

    if result.get("skipped"):
        raise HTTPException(status_code=409, detail="A synchronization pass is already running")

    if not result["success"]:
        raise HTTPException(status_code=500, detail=f"Sync failed: {result.get('error')}")

    return result
