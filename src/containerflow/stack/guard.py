"""Single-flight guard for operations mutating the shared stack."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from containerflow.errors import OperationInProgressError


class OperationGuard:
    """Allow one stack operation per process at a time.

    The reverse proxy routing table and the database engine are shared by
    every project, so setup and recreation never interleave. A second
    caller is rejected rather than queued.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._holder: str | None = None

    @property
    def active(self) -> str | None:
        """Name of the running operation, if any."""
        return self._holder

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[None]:
        if self._lock.locked():
            raise OperationInProgressError(self._holder or "unknown")
        async with self._lock:
            self._holder = operation
            try:
                yield
            finally:
                self._holder = None
