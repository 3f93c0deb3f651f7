"""Read-only access to stored contest windows.

Every call reads the store document fresh from disk; nothing is cached.

Ordering:
- get_game(): most recent contest first.
- get_all(): each game's window exactly as stored, i.e. ascending. This
  mirrors what existing consumers of ``GET /api/resultados`` receive and is
  kept on purpose; use get_game() for a most-recent-first view.
"""
import logging
from typing import Dict, List, Sequence

from loterias.services.games import LOTTERY_GAMES
from loterias.services.store import WindowStore
from loterias.services.sync.window import descending

logger = logging.getLogger(__name__)


class UnsupportedGameError(Exception):
    """Requested game is outside the supported set."""

    def __init__(self, game: str):
        super().__init__(f"Game '{game}' not found")
        self.game = game


class ResultsQueryService:
    """Projection of the store document for the public API."""

    def __init__(self, store: WindowStore, games: Sequence[str] = LOTTERY_GAMES):
        self.store = store
        self.games = tuple(games)

    def get_game(self, game: str) -> List[dict]:
        """
        Contests of one game, most recent first.

        Raises:
            UnsupportedGameError: if the game is not supported (store is not read)
            StoreReadError: if the store document cannot be read
        """
        if game not in self.games:
            raise UnsupportedGameError(game)

        document = self.store.read()
        return descending(document.get(game, []))

    def get_all(self) -> Dict[str, List[dict]]:
        """
        The whole store document, ascending per game.

        Raises:
            StoreReadError: if the store document cannot be read
        """
        return self.store.read()
