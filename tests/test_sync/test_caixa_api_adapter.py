"""Tests for CaixaApiAdapter.

Test Strategy:
1. Test URL construction for numbered and latest requests
2. Test successful payloads are returned verbatim
3. Test every failure mode maps to None (status, transport, body, numero)

Upstream is replaced with httpx.MockTransport; no network access.
"""
import httpx
import pytest

from loterias.services.sync.adapters.caixa_api_adapter import (
    DEFAULT_CAIXA_API_BASE,
    CaixaApiAdapter,
)

BASE = "https://caixa.test/portaldeloterias/api"


def make_adapter(handler) -> CaixaApiAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CaixaApiAdapter(base_url=BASE, client=client)


class TestBuildUrl:
    """Tests for build_url()."""

    def test_numbered_contest(self):
        adapter = CaixaApiAdapter(base_url=BASE)
        assert adapter.build_url("megasena", 2700) == f"{BASE}/megasena/2700"

    def test_latest_contest_keeps_trailing_slash(self):
        adapter = CaixaApiAdapter(base_url=BASE)
        assert adapter.build_url("quina") == f"{BASE}/quina/"

    def test_base_trailing_slash_is_normalized(self):
        adapter = CaixaApiAdapter(base_url=BASE + "/")
        assert adapter.build_url("quina", 1) == f"{BASE}/quina/1"

    def test_default_base(self):
        assert CaixaApiAdapter().build_url("lotofacil", 3) == f"{DEFAULT_CAIXA_API_BASE}/lotofacil/3"


class TestFetchContest:
    """Tests for fetch_contest()."""

    @pytest.mark.asyncio
    async def test_success_returns_payload_verbatim(self):
        payload = {"numero": 2700, "listaDezenas": ["01", "02"], "extra": {"nested": True}}
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json=payload)

        adapter = make_adapter(handler)
        result = await adapter.fetch_contest("megasena", 2700)
        await adapter.close()

        assert result == payload
        assert requested == [f"{BASE}/megasena/2700"]

    @pytest.mark.asyncio
    async def test_latest_request(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, json={"numero": 6500})

        adapter = make_adapter(handler)
        result = await adapter.fetch_contest("quina")

        assert result["numero"] == 6500
        assert requested == [f"{BASE}/quina/"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [404, 500, 503])
    async def test_non_success_status_is_absent(self, status_code):
        adapter = make_adapter(lambda request: httpx.Response(status_code, json={"numero": 1}))
        assert await adapter.fetch_contest("megasena", 1) is None

    @pytest.mark.asyncio
    async def test_transport_error_is_absent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = make_adapter(handler)
        assert await adapter.fetch_contest("megasena", 1) is None

    @pytest.mark.asyncio
    async def test_timeout_is_absent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = make_adapter(handler)
        assert await adapter.fetch_contest("megasena", 1) is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_absent(self):
        adapter = make_adapter(lambda request: httpx.Response(200, content=b"<html>manutencao</html>"))
        assert await adapter.fetch_contest("megasena", 1) is None

    @pytest.mark.asyncio
    async def test_non_object_body_is_absent(self):
        adapter = make_adapter(lambda request: httpx.Response(200, json=[{"numero": 1}]))
        assert await adapter.fetch_contest("megasena", 1) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"numero": 0},
        {"numero": None},
        {"numero": "12"},
        {"numero": True},
        {"listaDezenas": ["01"]},
    ])
    async def test_missing_or_zero_numero_is_absent(self, body):
        """A contest number not issued yet comes back with numero 0 or without one."""
        adapter = make_adapter(lambda request: httpx.Response(200, json=body))
        assert await adapter.fetch_contest("megasena", 9999) is None

    @pytest.mark.asyncio
    async def test_close_resets_client(self):
        adapter = make_adapter(lambda request: httpx.Response(200, json={"numero": 1}))
        await adapter.fetch_contest("megasena", 1)
        await adapter.close()

        assert adapter._client is None
