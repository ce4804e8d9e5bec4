"""Container recreation engine.

A recreation inspects a source container, derives the desired spec by
applying a mutation to a copy of it, and replaces or duplicates the
container:

- clone: new instance <base>-<n> next to the source; the source keeps
  running and shares volumes, env and labels with the clone
- url: routing rules rewritten to Host("<domain>"); in place
- config: env entries replaced by key, labels merged; in place

Only site instances are cloned or re-routed. In-place mutations remove
the old containers before creating any new one, so two routing
configurations are never live together, even across the instances of a
project. If a replacement cannot be brought up, the replacements created
so far are removed and the old containers are recreated from the specs
captured at inspection. Volume bindings are never changed.
"""

from __future__ import annotations

import logging
import time
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel

from containerflow.errors import (
    ContainerNotFoundError,
    InvalidRequestError,
    NameCollisionError,
    StackError,
    ValidationPostConditionError,
)
from containerflow.logging_schema import LogEvent
from containerflow.metrics import RECREATE_DURATION, RECREATE_TOTAL
from containerflow.stack.naming import (
    format_instance_name,
    host_rule,
    is_host_rule,
    is_valid_domain,
    next_instance_number,
    parse_instance_name,
)
from containerflow.stack.spec import ContainerSpec, LiveContainer
from containerflow.stack.validator import validate_container

if TYPE_CHECKING:
    from containerflow.stack.engine import StackEngine
    from containerflow.stack.guard import OperationGuard
    from containerflow.stack.naming import StackNaming

logger = logging.getLogger(__name__)


class MutationKind(StrEnum):
    CLONE = "clone"
    URL = "url"
    CONFIG = "config"


class Mutation(BaseModel):
    """Change applied to a copy of the source spec."""

    kind: ClassVar[MutationKind]
    in_place: ClassVar[bool]

    model_config = {"frozen": True}

    def apply(self, spec: ContainerSpec) -> ContainerSpec:
        raise NotImplementedError


class CloneMutation(Mutation):
    kind = MutationKind.CLONE
    in_place = False

    name: str

    def apply(self, spec: ContainerSpec) -> ContainerSpec:
        return spec.model_copy(update={"name": self.name}, deep=True)


class UrlChangeMutation(Mutation):
    kind = MutationKind.URL
    in_place = True

    domain: str

    def apply(self, spec: ContainerSpec) -> ContainerSpec:
        labels = dict(spec.labels)
        for key, value in spec.labels.items():
            if key.endswith(".rule") and is_host_rule(value):
                labels[key] = host_rule(self.domain)
        return spec.model_copy(update={"labels": labels}, deep=True)


class ConfigMutation(Mutation):
    kind = MutationKind.CONFIG
    in_place = True

    env: dict[str, str] = {}
    labels: dict[str, str] = {}

    def apply(self, spec: ContainerSpec) -> ContainerSpec:
        updated = spec.with_env(self.env) if self.env else spec.model_copy(deep=True)
        return updated.model_copy(update={"labels": {**updated.labels, **self.labels}})


def url_mutation(domain: str) -> UrlChangeMutation:
    """Normalise and check a domain before any container is touched."""
    domain = domain.strip().lower()
    if not is_valid_domain(domain):
        raise InvalidRequestError(f"Invalid domain: {domain}")
    return UrlChangeMutation(domain=domain)


def require_site(live: LiveContainer, naming: StackNaming) -> None:
    """Reject containers that are not site instances.

    A site instance is named <prefix><project>-<n>, knows its database,
    carries the project's routing rule and mounts a site volume. The shared
    proxy and database never qualify.
    """
    owner = naming.project_from_container(live.name)
    spec = live.spec
    is_site = (
        owner is not None
        and bool(spec.env_value("WORDPRESS_DB_NAME"))
        and f"{naming.router_key(owner[0])}.rule" in spec.labels
        and any(bind.split(":", 1)[0].startswith(naming.prefix) for bind in spec.binds)
    )
    if not is_site:
        raise InvalidRequestError(f"Container {live.name} is not a site instance")


class RecreationEngine:
    """Clone and recreate containers through the shared operation guard."""

    def __init__(self, engine: StackEngine, guard: OperationGuard, naming: StackNaming) -> None:
        self._engine = engine
        self._guard = guard
        self._naming = naming

    async def clone(self, source: str, overwrite: bool = False) -> LiveContainer:
        """Start a new instance of the source's service, numbered after the highest."""
        async with self._guard.hold(f"clone:{source}"):
            live = await self._inspect_source(source)
            require_site(live, self._naming)
            base, _ = parse_instance_name(live.name)
            numbers = await self._instance_numbers(base)
            name = format_instance_name(base, next_instance_number(numbers))
            [created] = await self.apply([live], CloneMutation(name=name), overwrite)
            return created

    async def change_url(self, source: str, domain: str) -> LiveContainer:
        """Point the container's routing rules at a new domain."""
        mutation = url_mutation(domain)
        async with self._guard.hold(f"url:{source}"):
            live = await self._inspect_source(source)
            require_site(live, self._naming)
            [created] = await self.apply([live], mutation)
            return created

    async def recreate(
        self, source: str, mutation: Mutation, overwrite: bool = False
    ) -> LiveContainer:
        """Apply a mutation to the source container."""
        async with self._guard.hold(f"{mutation.kind.value}:{source}"):
            live = await self._inspect_source(source)
            [created] = await self.apply([live], mutation, overwrite)
            return created

    async def _inspect_source(self, source: str) -> LiveContainer:
        live = await self._engine.inspect_container(source)
        if live is None:
            raise ContainerNotFoundError(source)
        return live

    async def _instance_numbers(self, base: str) -> list[int]:
        summaries = await self._engine.list_containers(filters={"name": [base]})
        numbers = []
        for summary in summaries:
            for raw in summary.get("Names") or []:
                name_base, number = parse_instance_name(raw.lstrip("/"))
                if name_base == base:
                    numbers.append(number)
        return numbers

    async def apply(
        self, sources: list[LiveContainer], mutation: Mutation, overwrite: bool = False
    ) -> list[LiveContainer]:
        """Recreate every source with the mutation applied, as one change.

        The caller holds the operation guard. In-place mutations remove all
        sources before the first replacement is created. Any failure removes
        the replacements created so far and restores every removed source.
        """
        kind = mutation.kind.value
        planned = [(live, mutation.apply(live.spec)) for live in sources]
        started = time.monotonic()
        for live, desired in planned:
            logger.info(
                "Recreating %s (%s)",
                live.name,
                kind,
                extra={
                    "event": LogEvent.RECREATE_STARTED,
                    "container": live.name,
                    "target": desired.name,
                    "kind": kind,
                },
            )

        if not mutation.in_place:
            for live, desired in planned:
                await self._clear_target(live, desired, overwrite, kind)

        removed: list[LiveContainer] = []
        created: list[LiveContainer] = []
        try:
            if mutation.in_place:
                for live, _ in planned:
                    await self._engine.teardown_container(live)
                    removed.append(live)
            for _, desired in planned:
                created.append(await self._bring_up(desired))
        except StackError as exc:
            for container in created:
                await self._discard(container.id, container.name)
            restored = await self._restore(removed) if removed else False
            if isinstance(exc, ValidationPostConditionError):
                RECREATE_TOTAL.labels(kind=kind, result="rolled_back").inc()
                logger.error(
                    "Container %s failed validation, removed",
                    exc.container,
                    extra={
                        "event": LogEvent.RECREATE_ROLLED_BACK,
                        "container": exc.container,
                        "kind": kind,
                        "restored": restored,
                    },
                )
                raise ValidationPostConditionError(exc.container, restored) from exc
            RECREATE_TOTAL.labels(kind=kind, result="failed").inc()
            logger.error(
                "Recreation (%s) failed: %s",
                kind,
                exc.message,
                extra={
                    "event": LogEvent.RECREATE_FAILED,
                    "container": ", ".join(live.name for live in sources),
                    "kind": kind,
                    "restored": restored,
                },
            )
            raise

        RECREATE_TOTAL.labels(kind=kind, result="completed").inc()
        RECREATE_DURATION.labels(kind=kind).observe(time.monotonic() - started)
        for (live, _), container in zip(planned, created):
            logger.info(
                "Recreated %s as %s",
                live.name,
                container.name,
                extra={
                    "event": LogEvent.RECREATE_COMPLETED,
                    "container": container.name,
                    "kind": kind,
                },
            )
        return created

    async def _clear_target(
        self, live: LiveContainer, desired: ContainerSpec, overwrite: bool, kind: str
    ) -> None:
        """Make room for a copy; the source itself is never overwritten."""
        holder = await self._engine.inspect_container(desired.name)
        if holder is None:
            return
        if not overwrite or holder.id == live.id:
            RECREATE_TOTAL.labels(kind=kind, result="failed").inc()
            raise NameCollisionError(desired.name)
        await self._engine.teardown_container(holder)

    async def _bring_up(self, desired: ContainerSpec) -> LiveContainer:
        """Run the container and check it against the desired spec."""
        new_id = await self._engine.run_container(desired)
        try:
            created = await self._engine.inspect_container(new_id)
        except StackError:
            await self._discard(new_id, desired.name)
            raise
        if created is None or not validate_container(created, desired):
            await self._discard(new_id, desired.name)
            raise ValidationPostConditionError(desired.name)
        return created

    async def _discard(self, container_id: str, name: str) -> None:
        try:
            await self._engine.remove_container(container_id)
        except StackError as exc:
            logger.warning(
                "Could not remove %s: %s",
                name,
                exc.message,
                extra={"event": LogEvent.CLEANUP_FAILED, "container": name},
            )

    async def _restore(self, previous: list[LiveContainer]) -> bool:
        """Bring back containers removed by an in-place recreation."""
        restored = True
        for live in previous:
            try:
                await self._engine.run_container(live.spec)
            except StackError as exc:
                restored = False
                logger.error(
                    "Could not restore %s: %s",
                    live.name,
                    exc.message,
                    extra={"event": LogEvent.RECREATE_RESTORED, "container": live.name, "restored": False},
                )
                continue
            logger.warning(
                "Restored %s with its previous configuration",
                live.name,
                extra={"event": LogEvent.RECREATE_RESTORED, "container": live.name, "restored": True},
            )
        return restored
