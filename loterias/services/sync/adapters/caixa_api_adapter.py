"""Caixa API adapter for fetching lottery contest results.

Endpoint shape:
    GET {base}/{game}/{contest_number}   -> one contest
    GET {base}/{game}/                   -> latest published contest

Every failure mode (non-2xx status, transport error or timeout, undecodable
body, ``numero`` missing or 0) is an expected condition, typically a contest
number not yet issued, and comes back as ``None``. There is no retry; the
next scheduled pass is the retry.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from loterias.core import metrics

logger = logging.getLogger(__name__)

DEFAULT_CAIXA_API_BASE = "https://servicebus2.caixa.gov.br/portaldeloterias/api"


class CaixaApiAdapter:
    """
    Adapter for the Caixa "portal de loterias" API.

    Payloads are returned verbatim as dicts; only ``numero`` is inspected.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_CAIXA_API_BASE,
        timeout: float = 30.0,
        max_connections: int = 20,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the Caixa API adapter.

        Args:
            base_url: API root, without trailing slash
            timeout: Per-request timeout in seconds
            max_connections: Connection pool size
            client: Pre-built HTTP client (tests inject one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_connections = max_connections
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(
                    max_keepalive_connections=self.max_connections,
                    max_connections=self.max_connections
                ),
                headers=self._get_headers()
            )
        return self._client

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; loterias-api)"
        }

    def build_url(self, game: str, contest_number: Optional[int] = None) -> str:
        """URL for one contest, or for the latest one when no number is given."""
        return f"{self.base_url}/{game}/{contest_number or ''}"

    async def fetch_contest(
        self,
        game: str,
        contest_number: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one contest of a game.

        Args:
            game: Game identifier (e.g. "megasena")
            contest_number: Contest number, or None for the latest contest

        Returns:
            Contest payload, or None if it is not available
        """
        label = f"{game} #{contest_number}" if contest_number else f"{game} (latest)"
        client = await self._get_client()

        try:
            response = await client.get(self.build_url(game, contest_number))
        except httpx.HTTPError as e:
            logger.warning(f"Request failed for {label}: {e!r}")
            metrics.record_upstream_request(game, "absent")
            return None

        if not response.is_success:
            logger.warning(f"Error fetching {label}: status {response.status_code}")
            metrics.record_upstream_request(game, "absent")
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Invalid JSON for {label}: {e}")
            metrics.record_upstream_request(game, "absent")
            return None

        numero = data.get("numero") if isinstance(data, dict) else None
        # bool is an int subclass; a real contest number is a positive int
        if not isinstance(numero, int) or isinstance(numero, bool) or numero <= 0:
            logger.warning(f"Contest not available for {label} (numero={numero!r})")
            metrics.record_upstream_request(game, "absent")
            return None

        metrics.record_upstream_request(game, "ok")
        return data

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
