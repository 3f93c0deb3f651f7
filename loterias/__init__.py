"""Loterias Caixa results service: daily synchronization and read API."""

__version__ = "1.0.0"
