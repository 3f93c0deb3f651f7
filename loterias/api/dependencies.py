"""Dependency providers for the API routes.

Services are built once in ``loterias.main`` and attached to ``app.state``;
these providers hand them to the routes, and tests replace them through
``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Request

from loterias.core.scheduler import SyncScheduler
from loterias.services.query_service import ResultsQueryService
from loterias.services.sync.orchestrator import SyncOrchestrator
from loterias.services.sync.snapshot import LatestSnapshotService


def get_query_service(request: Request) -> ResultsQueryService:
    return request.app.state.query_service


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_snapshot_service(request: Request) -> LatestSnapshotService:
    return request.app.state.snapshot_service


def get_sync_scheduler(request: Request) -> Optional[SyncScheduler]:
    return getattr(request.app.state, "scheduler", None)
