"""Sync orchestrator for keeping the contest store in step with the Caixa API.

Two passes, both single-writer and serialized by one pass lock:

- bootstrap: only while the store file does not exist. Fetches the latest
  contest of each game and then the ``window_size`` contests ending at it,
  and writes the first store document.
- sync: the scheduled pass. For each game compares the latest upstream
  contest with the highest stored one, fetches the gap, merges it into the
  window, trims the window back to ``window_size`` and writes the whole
  document once at the end.

Games are processed concurrently and independently; a game whose latest
contest cannot be fetched is skipped for the pass without affecting the others.
All upstream requests of a pass share one semaphore, and the fetch phase of a
pass runs under a deadline. A pass that misses its deadline or cannot read the
store writes nothing.

Schedule (see loterias.core.scheduler):
- sync: "0 21 * * *" America/Sao_Paulo
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from loterias.core import metrics
from loterias.core.logging import correlation_scope
from loterias.services.games import LOTTERY_GAMES
from loterias.services.store import StoreReadError, WindowStore
from loterias.services.sync.adapters.caixa_api_adapter import CaixaApiAdapter
from loterias.services.sync.window import (
    bootstrap_numbers,
    contest_number,
    latest_contest_number,
    merge_window,
    missing_numbers,
)

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Coordinates bootstrap and incremental synchronization passes.

    This is the only writer of the store document.
    """

    def __init__(
        self,
        store: WindowStore,
        adapter: CaixaApiAdapter,
        games: Sequence[str] = LOTTERY_GAMES,
        window_size: int = 500,
        max_concurrency: int = 20,
        pass_timeout: float = 900.0
    ):
        """
        Initialize the sync orchestrator.

        Args:
            store: Store document holding one window per game
            adapter: Caixa API adapter
            games: Supported games, processed in this order
            window_size: Maximum number of contests kept per game
            max_concurrency: Upstream requests in flight at once, across games
            pass_timeout: Deadline in seconds for the fetch phase of a pass
        """
        self.store = store
        self.adapter = adapter
        self.games = tuple(games)
        self.window_size = window_size
        self.pass_timeout = pass_timeout

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._pass_lock = asyncio.Lock()
        self.last_results: Dict[str, Dict[str, Any]] = {}

    @property
    def is_running(self) -> bool:
        """Whether a pass is in progress."""
        return self._pass_lock.locked()

    async def bootstrap(self) -> Dict[str, Any]:
        """
        Build the initial store if it does not exist yet.

        Returns:
            Pass result with per-game contest counts
        """
        return await self._run_pass("bootstrap", self._bootstrap_pass)

    async def sync(self) -> Dict[str, Any]:
        """
        Bring every game's window up to date with the Caixa API.

        Returns:
            Pass result with updated games and new contest count
        """
        return await self._run_pass("sync", self._sync_pass)

    def get_sync_status(self) -> Dict[str, Any]:
        """Current pass state and the last result of each pass kind."""
        return {
            "running": self.is_running,
            "store_exists": self.store.exists(),
            "window_size": self.window_size,
            "games": list(self.games),
            "last_bootstrap": self.last_results.get("bootstrap"),
            "last_sync": self.last_results.get("sync"),
        }

    # Pass plumbing
    # ─────────────────────────────────────────────────────────────

    async def _run_pass(
        self,
        kind: str,
        pass_func: Callable[[], Awaitable[Dict[str, Any]]]
    ) -> Dict[str, Any]:
        if self._pass_lock.locked():
            logger.warning(f"Skipping {kind}: another synchronization pass is still running")
            metrics.record_sync_pass(kind, "skipped", 0.0)
            return {"success": False, "kind": kind, "skipped": True, "error": "pass already running"}

        async with self._pass_lock:
            with correlation_scope(kind):
                started = time.perf_counter()
                logger.info(f"Starting {kind} pass")

                try:
                    result = await pass_func()
                    if result.get("skipped"):
                        status = "skipped"
                    else:
                        status = "success" if result["success"] else "failed"
                except asyncio.TimeoutError:
                    logger.error(
                        f"{kind} pass exceeded its {self.pass_timeout}s deadline; "
                        f"nothing was written"
                    )
                    result = {"success": False, "error": f"deadline of {self.pass_timeout}s exceeded"}
                    status = "timeout"
                except Exception as e:
                    logger.exception(f"{kind} pass failed: {e}")
                    result = {"success": False, "error": str(e)}
                    status = "failed"

                elapsed = time.perf_counter() - started
                result["kind"] = kind
                result["duration_ms"] = int(elapsed * 1000)
                result["finished_at"] = datetime.now(timezone.utc).isoformat()

                self.last_results[kind] = result
                metrics.record_sync_pass(kind, status, elapsed)
                logger.info(f"{kind} pass finished: {status} ({result['duration_ms']}ms)")
                return result

    async def _for_each_game(
        self,
        game_func: Callable[..., Awaitable[Any]],
        document: Optional[Dict[str, List[dict]]] = None
    ) -> Dict[str, Any]:
        """
        Run ``game_func`` for every game concurrently, under the pass deadline.

        A game whose coroutine raises is logged and mapped to None.
        """
        if document is None:
            calls = [game_func(game) for game in self.games]
        else:
            calls = [game_func(game, document.get(game, [])) for game in self.games]

        results = await asyncio.wait_for(
            asyncio.gather(*calls, return_exceptions=True),
            timeout=self.pass_timeout
        )

        outcomes: Dict[str, Any] = {}
        for game, result in zip(self.games, results):
            if isinstance(result, BaseException):
                logger.error(f"- {game}: unexpected error, skipped this pass: {result!r}")
                outcomes[game] = None
            else:
                outcomes[game] = result
        return outcomes

    async def _fetch(self, game: str, number: Optional[int] = None) -> Optional[dict]:
        async with self._semaphore:
            return await self.adapter.fetch_contest(game, number)

    async def _fetch_many(self, game: str, numbers: List[int]) -> List[dict]:
        """Fetch contests concurrently, dropping the unavailable ones."""
        results = await asyncio.gather(*(self._fetch(game, n) for n in numbers))
        return [r for r in results if r is not None]

    # Bootstrap
    # ─────────────────────────────────────────────────────────────

    async def _bootstrap_pass(self) -> Dict[str, Any]:
        if self.store.exists():
            logger.info(f"{self.store.path} already exists, skipping bootstrap")
            return {"success": True, "skipped": True}

        logger.info(
            f"{self.store.path} not found, fetching the last {self.window_size} "
            f"contests of {len(self.games)} games"
        )
        windows = await self._for_each_game(self._bootstrap_game)

        document = {game: window for game, window in windows.items() if window is not None}
        await asyncio.to_thread(self.store.write, document)
        metrics.update_window_sizes(document)

        unavailable = [game for game, window in windows.items() if window is None]
        logger.info(
            f"Store initialized with {len(document)}/{len(self.games)} games"
            + (f" (unavailable: {', '.join(unavailable)})" if unavailable else "")
        )
        return {
            "success": True,
            "games": {game: len(window) for game, window in document.items()},
            "unavailable": unavailable,
        }

    async def _bootstrap_game(self, game: str) -> Optional[List[dict]]:
        latest = await self._fetch(game)
        if latest is None:
            logger.warning(f"- {game}: could not get the latest contest, skipping")
            return None

        numbers = bootstrap_numbers(contest_number(latest), self.window_size)
        fetched = await self._fetch_many(game, numbers)
        window = merge_window([], fetched, self.window_size)

        logger.info(f"- {game}: {len(window)} contests stored")
        return window

    # Incremental sync
    # ─────────────────────────────────────────────────────────────

    async def _sync_pass(self) -> Dict[str, Any]:
        try:
            document = await asyncio.to_thread(self.store.read)
        except StoreReadError as e:
            logger.error(f"Cannot read the store for update, run the bootstrap first: {e}")
            return {"success": False, "error": str(e)}

        outcomes = await self._for_each_game(self._sync_game, document)

        updated: Dict[str, int] = {}
        for game, outcome in outcomes.items():
            if outcome is not None and outcome["window"] is not None:
                document[game] = outcome["window"]
                updated[game] = outcome["new"]

        if updated:
            await asyncio.to_thread(self.store.write, document)
            metrics.update_window_sizes(document)
            logger.info(f"Store updated: {updated}")
        else:
            logger.info("No new contests, store left untouched")

        return {
            "success": True,
            "processed": len(self.games),
            "updated": updated,
            "new_contests": sum(updated.values()),
            "unavailable": [
                game for game, outcome in outcomes.items()
                if outcome is None or outcome["status"] == "unavailable"
            ],
            "written": bool(updated),
        }

    async def _sync_game(self, game: str, stored: List[dict]) -> Dict[str, Any]:
        """
        Extend one game's window with contests newer than the stored ones.

        Returns:
            Outcome dict; ``window`` is the new window, or None when unchanged
        """
        latest = await self._fetch(game)
        if latest is None:
            logger.warning(f"- {game}: could not get the latest contest, skipping this pass")
            return {"status": "unavailable", "window": None, "new": 0}

        latest_api = contest_number(latest)
        latest_stored = latest_contest_number(stored)

        if latest_api <= latest_stored:
            logger.info(f"- {game}: up to date (#{latest_stored})")
            return self._unchanged(game, stored, "up_to_date")

        logger.info(
            f"- {game}: new contests found. Last stored: {latest_stored}, "
            f"last on API: {latest_api}"
        )
        fetched = await self._fetch_many(game, missing_numbers(latest_stored, latest_api))

        if not fetched:
            logger.warning(f"- {game}: none of the new contests could be fetched")
            return self._unchanged(game, stored, "no_new_results")

        window = merge_window(stored, fetched, self.window_size)
        logger.info(f"- {game}: updated with {len(fetched)} new contest(s)")
        return {"status": "updated", "window": window, "new": len(fetched)}

    def _unchanged(self, game: str, stored: List[dict], status: str) -> Dict[str, Any]:
        """Outcome for a game with no new contests; an oversized window is still trimmed."""
        if len(stored) > self.window_size:
            logger.info(f"- {game}: trimming {len(stored)} stored contests to {self.window_size}")
            return {"status": "trimmed", "window": merge_window(stored, [], self.window_size), "new": 0}
        return {"status": status, "window": None, "new": 0}
