"""API v1 module."""

from containerflow.api.v1.containers import router as containers_router
from containerflow.api.v1.health import router as health_router
from containerflow.api.v1.services import router as services_router
from containerflow.api.v1.setup import router as setup_router

__all__ = [
    "containers_router",
    "health_router",
    "services_router",
    "setup_router",
]
