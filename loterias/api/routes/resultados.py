"""Lottery results API.

Provides endpoints for:
- Stored contests of one game (most recent first)
- Stored contests of every game (as stored, ascending)
- Latest-results snapshot
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException

from loterias.api.dependencies import get_query_service, get_snapshot_service
from loterias.services.query_service import ResultsQueryService, UnsupportedGameError
from loterias.services.store import StoreReadError
from loterias.services.sync.snapshot import LatestSnapshotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resultados"])

STORE_ERROR_DETAIL = "Error reading the results database"


@router.get("/resultados")
def get_all_results(
    query_service: ResultsQueryService = Depends(get_query_service)
) -> Dict[str, List[dict]]:
    """
    Get the stored contests of every game.

    Each game's list is in stored order (oldest first).
    """
    try:
        return query_service.get_all()
    except StoreReadError as e:
        logger.error(f"Results read failed: {e}")
        raise HTTPException(status_code=500, detail=STORE_ERROR_DETAIL)


@router.get("/resultados/{game_name}")
def get_game_results(
    game_name: str,
    query_service: ResultsQueryService = Depends(get_query_service)
) -> List[dict]:
    """
    Get the stored contests of one game, most recent first.

    Args:
        game_name: Game identifier, e.g. "megasena"
    """
    try:
        return query_service.get_game(game_name)
    except UnsupportedGameError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreReadError as e:
        logger.error(f"Results read failed for {game_name}: {e}")
        raise HTTPException(status_code=500, detail=STORE_ERROR_DETAIL)


@router.get("/ultimos")
def get_latest_snapshot(
    snapshot_service: LatestSnapshotService = Depends(get_snapshot_service)
) -> Dict[str, dict]:
    """Get the latest contest of each game, with its capture time."""
    try:
        return snapshot_service.read()
    except StoreReadError as e:
        logger.error(f"Snapshot read failed: {e}")
        raise HTTPException(status_code=500, detail="Error reading the latest results snapshot")
