"""Latest-results snapshot.

Keeps a small side document with only the most recent contest of each game,
stamped with the time it was captured:

    {"megasena": {...payload, "ultimaAtualizacao": "2026-10-18T00:00:00+00:00"},
     "quina": {"erro": "latest contest unavailable", "ultimaAtualizacao": "..."}}

The document is rewritten in full on every refresh and is independent of the
contest window store.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from loterias.core import metrics
from loterias.core.logging import correlation_scope
from loterias.services.games import LOTTERY_GAMES
from loterias.services.store import JsonDocumentStore
from loterias.services.sync.adapters.caixa_api_adapter import CaixaApiAdapter

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "latest contest unavailable"


class LatestSnapshotService:
    """Captures the latest contest of every game into one JSON document."""

    def __init__(
        self,
        store: JsonDocumentStore,
        adapter: CaixaApiAdapter,
        games: Sequence[str] = LOTTERY_GAMES
    ):
        self.store = store
        self.adapter = adapter
        self.games = tuple(games)
        self._lock = asyncio.Lock()
        self.last_result: Optional[Dict[str, Any]] = None

    async def refresh(self) -> Dict[str, Any]:
        """
        Fetch the latest contest of each game and rewrite the snapshot.

        Returns:
            Result with the games captured and the ones unavailable
        """
        if self._lock.locked():
            logger.warning("Snapshot refresh already running, skipping")
            return {"success": False, "skipped": True, "error": "refresh already running"}

        async with self._lock:
            with correlation_scope("snapshot"):
                started = time.perf_counter()
                captured_at = datetime.now(timezone.utc).isoformat()

                latest = await asyncio.gather(
                    *(self.adapter.fetch_contest(game) for game in self.games)
                )

                snapshot: Dict[str, Dict[str, Any]] = {}
                unavailable = []
                for game, payload in zip(self.games, latest):
                    if payload is None:
                        unavailable.append(game)
                        snapshot[game] = {"erro": UNAVAILABLE_MESSAGE, "ultimaAtualizacao": captured_at}
                    else:
                        snapshot[game] = {**payload, "ultimaAtualizacao": captured_at}
                        logger.info(f"- {game}: captured contest #{payload['numero']}")

                await asyncio.to_thread(self.store.write, snapshot)

                elapsed = time.perf_counter() - started
                self.last_result = {
                    "success": True,
                    "captured": len(self.games) - len(unavailable),
                    "unavailable": unavailable,
                    "finished_at": captured_at,
                    "duration_ms": int(elapsed * 1000),
                }
                metrics.record_sync_pass("snapshot", "success", elapsed)
                logger.info(f"Snapshot {self.store.path} updated at {captured_at}")
                return self.last_result

    def read(self) -> Dict[str, Any]:
        """Current snapshot document (raises StoreReadError if missing or corrupt)."""
        return self.store.read()
