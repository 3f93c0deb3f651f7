"""API adapters for external result sources.

Available adapters:
- caixa_api_adapter: Caixa "portal de loterias" API
"""
from loterias.services.sync.adapters.caixa_api_adapter import (
    CaixaApiAdapter,
    DEFAULT_CAIXA_API_BASE,
)

__all__ = [
    "CaixaApiAdapter",
    "DEFAULT_CAIXA_API_BASE",
]
