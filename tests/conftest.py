"""Shared pytest fixtures for loterias tests."""
import asyncio
import json
import os
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional, Set, Tuple

import pytest

# Settings are read at import time; keep tests hermetic
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

from loterias.services.store import JsonDocumentStore, WindowStore  # noqa: E402


def make_contest(numero: int, game: str = "megasena") -> dict:
    """Build a contest payload shaped like the Caixa API response."""
    return {
        "tipoJogo": game.upper(),
        "numero": numero,
        "dataApuracao": f"{(numero % 28) + 1:02d}/10/2026",
        "listaDezenas": [f"{(numero + i) % 60 + 1:02d}" for i in range(6)],
        "acumulado": numero % 2 == 0,
        "listaRateioPremio": [
            {"descricaoFaixa": "6 acertos", "faixa": 1, "numeroDeGanhadores": 0, "valorPremio": 0.0}
        ],
    }


def numbers(window: Iterable[dict]) -> List[int]:
    """Contest numbers of a window, in window order."""
    return [record["numero"] for record in window]


class FakeCaixaAdapter:
    """
    In-memory stand-in for CaixaApiAdapter.

    Args:
        latest: game -> latest contest number (missing game: latest unavailable)
        unavailable: (game, numero) pairs that come back as None
        failing: games whose every request raises RuntimeError
    """

    def __init__(
        self,
        latest: Optional[Dict[str, int]] = None,
        unavailable: Optional[Set[Tuple[str, int]]] = None,
        failing: Optional[Set[str]] = None
    ):
        self.latest = dict(latest or {})
        self.unavailable = set(unavailable or set())
        self.failing = set(failing or set())
        self.calls: List[Tuple[str, Optional[int]]] = []
        self.closed = False

    async def fetch_contest(self, game: str, contest_number: Optional[int] = None) -> Optional[dict]:
        self.calls.append((game, contest_number))
        await asyncio.sleep(0)

        if game in self.failing:
            raise RuntimeError(f"boom: {game}")

        latest = self.latest.get(game)
        if latest is None:
            return None
        if contest_number is None:
            return make_contest(latest, game)
        if contest_number > latest or (game, contest_number) in self.unavailable:
            return None
        return make_contest(contest_number, game)

    def numbered_calls(self, game: str) -> List[int]:
        """Contest numbers requested for a game (latest-checks excluded)."""
        return [n for g, n in self.calls if g == game and n is not None]

    async def close(self):
        self.closed = True


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Path of a store document that does not exist yet."""
    return tmp_path / "db.json"


@pytest.fixture
def window_store(store_path: Path) -> WindowStore:
    return WindowStore(store_path)


@pytest.fixture
def snapshot_store(tmp_path: Path) -> JsonDocumentStore:
    return JsonDocumentStore(tmp_path / "loterias.json")


@pytest.fixture
def seed_store(window_store: WindowStore):
    """Write a store document built from ``{game: [contest numbers]}``."""

    def _seed(windows: Dict[str, List[int]]) -> WindowStore:
        window_store.write({
            game: [make_contest(n, game) for n in contest_numbers]
            for game, contest_numbers in windows.items()
        })
        return window_store

    return _seed


@pytest.fixture
def read_json():
    def _read(path: Path):
        return json.loads(Path(path).read_text(encoding="utf-8"))

    return _read


@pytest.fixture(scope="function")
def test_client(window_store: WindowStore, snapshot_store: JsonDocumentStore) -> Generator:
    """
    FastAPI TestClient wired to temporary stores and a fake upstream.

    The client is not used as a context manager, so the lifespan (bootstrap,
    scheduler) never runs.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/resultados/megasena")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from loterias.main import app
    from loterias.api.dependencies import (
        get_orchestrator,
        get_query_service,
        get_snapshot_service,
    )
    from loterias.services.query_service import ResultsQueryService
    from loterias.services.sync.orchestrator import SyncOrchestrator
    from loterias.services.sync.snapshot import LatestSnapshotService

    adapter = FakeCaixaAdapter()
    orchestrator = SyncOrchestrator(window_store, adapter, window_size=5)

    app.dependency_overrides[get_query_service] = lambda: ResultsQueryService(window_store)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_snapshot_service] = lambda: LatestSnapshotService(snapshot_store, adapter)

    client = TestClient(app)
    client.adapter = adapter
    client.orchestrator = orchestrator
    yield client

    app.dependency_overrides.clear()
