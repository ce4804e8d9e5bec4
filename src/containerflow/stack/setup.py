"""Infrastructure setup orchestrator.

Provisions the shared stack in a fixed order:

    network -> reverse-proxy -> database -> database-ready

Each step moves pending -> running -> success | error. A step whose
resource already exists and validates is skipped unless force is set;
force tears the resource down and creates it again. The first failing
step ends the session and every later step stays pending.

Progress is reported to a single callback, synchronously, one event per
transition and in transition order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel

from containerflow.errors import (
    ProvisioningStepError,
    ReadinessTimeoutError,
    ResourceMismatchError,
    StackError,
)
from containerflow.logging_schema import LogEvent
from containerflow.metrics import SETUP_STEP_DURATION, SETUP_STEP_RESULTS
from containerflow.stack import presets
from containerflow.stack.validator import validate_container, validate_network

if TYPE_CHECKING:
    from containerflow.config import AppConfig
    from containerflow.infra import MySQLAdmin
    from containerflow.stack.engine import StackEngine
    from containerflow.stack.guard import OperationGuard
    from containerflow.stack.spec import ContainerSpec

logger = logging.getLogger(__name__)


class StepId(StrEnum):
    """Setup steps in execution order."""

    NETWORK = "network"
    REVERSE_PROXY = "reverse-proxy"
    DATABASE = "database"
    DATABASE_READY = "database-ready"


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


STEP_LABELS: dict[StepId, str] = {
    StepId.NETWORK: "Network",
    StepId.REVERSE_PROXY: "Reverse proxy",
    StepId.DATABASE: "Database",
    StepId.DATABASE_READY: "Database readiness",
}

STEP_ORDER: tuple[StepId, ...] = (
    StepId.NETWORK,
    StepId.REVERSE_PROXY,
    StepId.DATABASE,
    StepId.DATABASE_READY,
)

ALREADY_SATISFIED = "already satisfied"


class ProvisioningStep(BaseModel):
    """State of one setup step within a session."""

    id: StepId
    label: str
    order: int
    status: StepStatus = StepStatus.PENDING
    message: str | None = None


class ProgressEvent(BaseModel):
    """One step transition."""

    step_id: StepId
    status: StepStatus
    message: str | None = None

    model_config = {"frozen": True}


ProgressCallback = Callable[[ProgressEvent], None]


class SetupSession(BaseModel):
    """Steps and outcome of one setup run."""

    force: bool = False
    steps: list[ProvisioningStep]
    status: StepStatus = StepStatus.PENDING
    failing_step: StepId | None = None
    message: str | None = None

    @classmethod
    def fresh(cls, force: bool) -> SetupSession:
        return cls(
            force=force,
            steps=[
                ProvisioningStep(id=step_id, label=STEP_LABELS[step_id], order=index)
                for index, step_id in enumerate(STEP_ORDER)
            ],
        )


class SetupResult(BaseModel):
    """Outcome returned to the caller of a setup run."""

    ok: bool
    failing_step: StepId | None = None
    message: str | None = None
    steps: list[ProvisioningStep]

    @classmethod
    def from_session(cls, session: SetupSession) -> SetupResult:
        return cls(
            ok=session.status == StepStatus.SUCCESS,
            failing_step=session.failing_step,
            message=session.message,
            steps=[step.model_copy() for step in session.steps],
        )


class SetupOrchestrator:
    """Provision network, reverse proxy and database in order."""

    def __init__(
        self,
        config: AppConfig,
        engine: StackEngine,
        database: MySQLAdmin,
        guard: OperationGuard,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._engine = engine
        self._database = database
        self._guard = guard
        self._sleep = sleep

    async def run(self, force: bool = False, progress: ProgressCallback | None = None) -> SetupResult:
        """Run a fresh setup session.

        Failures are reported in the result, never raised; the only
        exception is OperationInProgressError when another stack operation
        holds the guard.
        """
        async with self._guard.hold("setup"):
            session = SetupSession.fresh(force)
            session.status = StepStatus.RUNNING
            logger.info(
                "Starting infrastructure setup",
                extra={"event": LogEvent.SETUP_STARTED, "force": force},
            )

            for step in session.steps:
                await self._run_step(session, step, progress)
                if step.status == StepStatus.ERROR:
                    session.status = StepStatus.ERROR
                    session.failing_step = step.id
                    session.message = step.message
                    logger.error(
                        "Infrastructure setup failed at %s: %s",
                        step.id.value,
                        step.message,
                        extra={"event": LogEvent.SETUP_FAILED, "step": step.id.value},
                    )
                    return SetupResult.from_session(session)

            session.status = StepStatus.SUCCESS
            logger.info("Infrastructure setup completed", extra={"event": LogEvent.SETUP_COMPLETED})
            return SetupResult.from_session(session)

    async def _run_step(
        self,
        session: SetupSession,
        step: ProvisioningStep,
        progress: ProgressCallback | None,
    ) -> None:
        self._transition(step, StepStatus.RUNNING, f"Checking {step.label.lower()}...", progress)
        started = time.monotonic()
        try:
            message, result = await self._execute(step.id, session.force)
        except StackError as exc:
            SETUP_STEP_RESULTS.labels(step=step.id.value, result="error").inc()
            self._transition(step, StepStatus.ERROR, exc.message, progress)
            return
        except Exception as exc:
            SETUP_STEP_RESULTS.labels(step=step.id.value, result="error").inc()
            logger.exception("Unexpected failure in setup step %s", step.id.value)
            error = ProvisioningStepError(step.id.value, str(exc) or type(exc).__name__)
            self._transition(step, StepStatus.ERROR, error.message, progress)
            return
        finally:
            SETUP_STEP_DURATION.labels(step=step.id.value).observe(time.monotonic() - started)

        SETUP_STEP_RESULTS.labels(step=step.id.value, result=result).inc()
        self._transition(step, StepStatus.SUCCESS, message, progress)

    def _transition(
        self,
        step: ProvisioningStep,
        status: StepStatus,
        message: str | None,
        progress: ProgressCallback | None,
    ) -> None:
        step.status = status
        step.message = message
        logger.info(
            "Setup step %s -> %s",
            step.id.value,
            status.value,
            extra={
                "event": LogEvent.STEP_TRANSITION,
                "step": step.id.value,
                "status": status.value,
                "detail": message,
            },
        )
        if progress is not None:
            progress(ProgressEvent(step_id=step.id, status=status, message=message))

    async def _execute(self, step_id: StepId, force: bool) -> tuple[str, str]:
        """Run one step; return (message, metric result)."""
        stack = self._config.stack
        if step_id == StepId.NETWORK:
            return await self._ensure_network(force)
        if step_id == StepId.REVERSE_PROXY:
            return await self._ensure_container(step_id, presets.proxy_spec(stack), force)
        if step_id == StepId.DATABASE:
            return await self._ensure_container(
                step_id, presets.database_spec(stack, self._config.mysql), force
            )
        return await self._wait_database()

    async def _ensure_network(self, force: bool) -> tuple[str, str]:
        spec = presets.network_spec(self._config.stack)
        existing = await self._engine.inspect_network(spec.name)

        if existing is not None:
            valid = validate_network(existing, spec.name)
            if valid and not force:
                return ALREADY_SATISFIED, "skipped"
            if not valid and not force:
                raise ResourceMismatchError(f"Network {spec.name}")
            await self._engine.remove_network(existing)
            await self._engine.create_network(spec)
            return f"Network {spec.name} recreated", "created"

        await self._engine.create_network(spec)
        return f"Network {spec.name} created", "created"

    async def _ensure_container(
        self, step_id: StepId, spec: ContainerSpec, force: bool
    ) -> tuple[str, str]:
        existing = await self._engine.inspect_container(spec.name)

        if existing is not None:
            valid = validate_container(existing, spec)
            if valid and not force:
                if existing.running:
                    return ALREADY_SATISFIED, "skipped"
                await self._engine.start_container(existing.id)
                return f"{ALREADY_SATISFIED}, container {spec.name} started", "skipped"
            if not valid and not force:
                raise ResourceMismatchError(f"Container {spec.name}")
            await self._engine.teardown_container(existing)
            await self._engine.run_container(spec)
            return f"Container {spec.name} recreated", "created"

        await self._engine.run_container(spec)
        return f"Container {spec.name} created", "created"

    async def _wait_database(self) -> tuple[str, str]:
        mysql = self._config.mysql
        attempts = max(mysql.readiness_retries, 1)
        for attempt in range(1, attempts + 1):
            if await self._database.ping():
                return "Database is ready", "skipped"
            logger.info(
                "Database not ready (attempt %d/%d), retrying in %.1fs",
                attempt,
                attempts,
                mysql.readiness_delay,
                extra={"event": LogEvent.DATABASE_NOT_READY, "attempt": attempt},
            )
            if attempt < attempts:
                await self._sleep(mysql.readiness_delay)
        raise ReadinessTimeoutError(StepId.DATABASE_READY.value, attempts)
