"""
Prometheus metrics for the loterias service.

Metrics exposed:
- Upstream (Caixa API) request outcomes per game
- Synchronization pass counters and durations
- Stored window sizes per game
- Scheduler status gauge

HTTP request metrics come from prometheus-fastapi-instrumentator in main.py.
"""
import time

from prometheus_client import Counter, Gauge, Histogram

# Upstream API Metrics
upstream_requests_total = Counter(
    "loterias_upstream_requests_total",
    "Total requests to the Caixa API",
    ["game", "outcome"]
)

# Synchronization Metrics
sync_passes_total = Counter(
    "loterias_sync_passes_total",
    "Total synchronization passes",
    ["kind", "status"]
)

sync_pass_duration_seconds = Histogram(
    "loterias_sync_pass_duration_seconds",
    "Synchronization pass duration in seconds",
    ["kind"],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 900)
)

sync_last_success_timestamp = Gauge(
    "loterias_sync_last_success_timestamp",
    "Unix time of the last successful synchronization pass",
    ["kind"]
)

contests_stored = Gauge(
    "loterias_contests_stored",
    "Number of contests held in the stored window",
    ["game"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "loterias_scheduler_running",
    "Whether the sync scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "loterias_scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def record_upstream_request(game: str, outcome: str):
    """Record one Caixa API request outcome ("ok" or "absent")."""
    upstream_requests_total.labels(game=game, outcome=outcome).inc()


def record_sync_pass(kind: str, status: str, duration_seconds: float):
    """
    Record a finished synchronization pass.

    Args:
        kind: "bootstrap", "sync" or "snapshot"
        status: "success", "failed", "skipped" or "timeout"
        duration_seconds: Wall time of the pass
    """
    sync_passes_total.labels(kind=kind, status=status).inc()
    sync_pass_duration_seconds.labels(kind=kind).observe(duration_seconds)
    if status == "success":
        sync_last_success_timestamp.labels(kind=kind).set(time.time())


def update_window_sizes(document: dict):
    """Update the per-game stored window gauge from a store document."""
    for game, window in document.items():
        contests_stored.labels(game=game).set(len(window))


def update_scheduler_metrics(running: bool, jobs: int = 0):
    """Update scheduler metrics."""
    scheduler_running.set(1 if running else 0)
    scheduler_jobs_total.set(jobs if running else 0)
