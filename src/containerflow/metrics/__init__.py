"""Prometheus metrics."""

from containerflow.metrics.collector import (
    DOCKER_ERRORS,
    RECREATE_DURATION,
    RECREATE_TOTAL,
    SETUP_STEP_DURATION,
    SETUP_STEP_RESULTS,
)

__all__ = [
    "DOCKER_ERRORS",
    "RECREATE_DURATION",
    "RECREATE_TOTAL",
    "SETUP_STEP_DURATION",
    "SETUP_STEP_RESULTS",
]
