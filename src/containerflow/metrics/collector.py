"""Prometheus metrics definitions for containerflow.

Tracks stack-level operations:
- setup steps (duration and outcome per step)
- container recreation (clone, URL change, config update)
- container engine failures
"""

from prometheus_client import Counter, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================
# Image pulls and database readiness dominate (100ms ~ 5min)
_BUCKETS_SLOW = (
    0.1, 0.2, 0.4, 0.8, 1.5,
    3, 6, 12, 24, 48,
    96, 180, 300,
)

# =============================================================================
# Setup Metrics
# =============================================================================

SETUP_STEP_DURATION = Histogram(
    "containerflow_setup_step_duration_seconds",
    "Duration of infrastructure setup steps",
    ["step"],  # network, reverse-proxy, database, database-ready
    buckets=_BUCKETS_SLOW,
)

SETUP_STEP_RESULTS = Counter(
    "containerflow_setup_step_results_total",
    "Setup step outcomes",
    ["step", "result"],  # result: created, skipped, error
)

# =============================================================================
# Recreation Metrics
# =============================================================================

RECREATE_TOTAL = Counter(
    "containerflow_recreate_total",
    "Container recreation outcomes",
    ["kind", "result"],  # kind: clone, url, config / result: completed, rolled_back, failed
)

RECREATE_DURATION = Histogram(
    "containerflow_recreate_duration_seconds",
    "Duration of container recreation",
    ["kind"],
    buckets=_BUCKETS_SLOW,
)

# =============================================================================
# Engine Metrics
# =============================================================================

DOCKER_ERRORS = Counter(
    "containerflow_docker_errors_total",
    "Container engine call failures",
    ["operation"],
)


def _init_metrics() -> None:
    """Initialize labeled metrics with zero values."""
    for step in ["network", "reverse-proxy", "database", "database-ready"]:
        SETUP_STEP_DURATION.labels(step=step)
        for result in ["created", "skipped", "error"]:
            SETUP_STEP_RESULTS.labels(step=step, result=result)

    for kind in ["clone", "url", "config"]:
        RECREATE_DURATION.labels(kind=kind)
        for result in ["completed", "rolled_back", "failed"]:
            RECREATE_TOTAL.labels(kind=kind, result=result)

    for op in ["inspect", "list", "create", "start", "stop", "remove", "pull"]:
        DOCKER_ERRORS.labels(operation=op)


_init_metrics()
