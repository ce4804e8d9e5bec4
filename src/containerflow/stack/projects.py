"""Project operations exposed to the UI layer.

A project is a WordPress site: one database and user on the shared
MySQL engine, a data volume, and one or more identical container
instances behind the reverse proxy.
"""

from __future__ import annotations

import logging
import secrets
import string
from typing import TYPE_CHECKING

import aiomysql

from containerflow.errors import (
    ContainerNotFoundError,
    DatabaseError,
    InvalidRequestError,
    LastInstanceError,
    NameCollisionError,
    ServiceNotFoundError,
    StackError,
)
from containerflow.logging_schema import LogEvent
from containerflow.stack import presets
from containerflow.stack.grouping import ServiceGroup, find_group, group_services
from containerflow.stack.naming import is_valid_domain, is_valid_project_name
from containerflow.stack.recreate import require_site, url_mutation

if TYPE_CHECKING:
    from containerflow.config import AppConfig
    from containerflow.infra import MySQLAdmin
    from containerflow.stack.engine import StackEngine
    from containerflow.stack.guard import OperationGuard
    from containerflow.stack.naming import StackNaming
    from containerflow.stack.recreate import RecreationEngine
    from containerflow.stack.spec import LiveContainer

logger = logging.getLogger(__name__)

_PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#%^*-_"


def generate_password(length: int = 24) -> str:
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


class ProjectService:
    """Create, scale, re-route and delete projects."""

    def __init__(
        self,
        config: AppConfig,
        naming: StackNaming,
        engine: StackEngine,
        recreation: RecreationEngine,
        database: MySQLAdmin,
        guard: OperationGuard,
    ) -> None:
        self._config = config
        self._naming = naming
        self._engine = engine
        self._recreation = recreation
        self._database = database
        self._guard = guard

    async def list_service_groups(self) -> list[ServiceGroup]:
        """Recompute project groups from the live container list."""
        summaries = await self._engine.list_containers(filters={"name": [self._naming.prefix]})
        containers: list[LiveContainer] = []
        for summary in summaries:
            live = await self._engine.inspect_container(summary["Id"])
            # Removed between list and inspect
            if live is not None:
                containers.append(live)
        return group_services(containers, self._naming)

    async def get_service_group(self, service: str) -> ServiceGroup:
        group = find_group(await self.list_service_groups(), service)
        if group is None:
            raise ServiceNotFoundError(service)
        return group

    async def add_instance(self, service: str) -> LiveContainer:
        """Scale up by cloning the highest-numbered instance."""
        group = await self.get_service_group(service)
        return await self._recreation.clone(group.highest.container.id)

    async def remove_instance(self, service: str) -> str:
        """Scale down by removing the highest-numbered instance.

        Returns the removed container name. The last instance is never
        removed; deleting a project is a separate operation.
        """
        async with self._guard.hold(f"remove-instance:{service}"):
            group = await self.get_service_group(service)
            if len(group.instances) <= 1:
                raise LastInstanceError(service)
            target = group.highest.container
            await self._engine.teardown_container(target)
            logger.info(
                "Removed instance %s of %s",
                target.name,
                service,
                extra={"event": LogEvent.CONTAINER_REMOVED, "container": target.name, "service": service},
            )
            return target.name

    async def change_project_url(self, service: str, domain: str) -> list[LiveContainer]:
        """Move every instance of a project to a new domain as one operation.

        All instances are removed before the first one is recreated, so the
        old and new domain are never served together. On failure every
        instance is restored with its previous domain.
        """
        mutation = url_mutation(domain)
        async with self._guard.hold(f"change-url:{service}"):
            group = await self.get_service_group(service)
            sources = [instance.container for instance in group.instances]
            for live in sources:
                require_site(live, self._naming)
            return await self._recreation.apply(sources, mutation)

    async def create_project(self, name: str, domain: str | None = None) -> LiveContainer:
        """Create the database, user and first instance of a new project."""
        name = name.strip().lower()
        if not is_valid_project_name(name):
            raise InvalidRequestError(
                f"Invalid project name: {name} (lowercase letters, digits and dashes)"
            )
        stack = self._config.stack
        domain = (domain or f"{name}.{stack.default_domain_suffix}").strip().lower()
        if not is_valid_domain(domain):
            raise InvalidRequestError(f"Invalid domain: {domain}")

        async with self._guard.hold(f"create-project:{name}"):
            groups = await self.list_service_groups()
            if find_group(groups, name) is not None:
                raise NameCollisionError(self._naming.instance_name(name, 1))

            password = generate_password()
            db_name = self._naming.database_name(name)
            db_user = self._naming.database_user(name)
            try:
                await self._database.create_database_with_user(db_name, db_user, password)
            except (aiomysql.Error, OSError) as exc:
                raise DatabaseError(f"Could not create database {db_name}: {exc}") from exc

            spec = presets.site_spec(stack, self._naming, name, domain, password)
            container_id = await self._engine.run_container(spec)
            live = await self._engine.inspect_container(container_id)
            if live is None:
                raise ContainerNotFoundError(spec.name)
            logger.info(
                "Created project %s at %s",
                name,
                domain,
                extra={
                    "event": LogEvent.PROJECT_CREATED,
                    "service": name,
                    "domain": domain,
                    "database": db_name,
                },
            )
            return live

    async def delete_project(self, name: str) -> list[str]:
        """Remove every container, the data volume and the database of a project.

        Secondary cleanup failures (volume, database) are logged and do not
        abort the deletion. Returns the names of the removed containers.
        """
        async with self._guard.hold(f"delete-project:{name}"):
            summaries = await self._engine.list_containers(
                filters={"label": [f"{self._naming.project_label}={name}"]}
            )
            if not summaries:
                group = find_group(await self.list_service_groups(), name)
                if group is None:
                    raise ServiceNotFoundError(name)
                summaries = [
                    {"Id": i.container.id, "Names": [i.container.name], "State": i.container.state}
                    for i in group.instances
                ]

            removed = []
            for summary in summaries:
                if summary.get("State") == "running":
                    await self._engine.stop_container(summary["Id"])
                await self._engine.remove_container(summary["Id"])
                names = summary.get("Names") or [summary["Id"]]
                removed.append(names[0].lstrip("/"))

            volume = self._naming.volume_name(name)
            try:
                await self._engine.remove_volume(volume)
            except StackError as exc:
                logger.warning(
                    "Could not remove volume %s: %s",
                    volume,
                    exc.message,
                    extra={"event": LogEvent.CLEANUP_FAILED, "volume": volume},
                )

            db_name = self._naming.database_name(name)
            try:
                await self._database.drop_database_and_user(db_name, self._naming.database_user(name))
            except (aiomysql.Error, OSError) as exc:
                logger.warning(
                    "Could not drop database %s: %s",
                    db_name,
                    exc,
                    extra={"event": LogEvent.CLEANUP_FAILED, "database": db_name},
                )

            logger.info(
                "Deleted project %s",
                name,
                extra={"event": LogEvent.PROJECT_DELETED, "service": name, "removed": len(removed)},
            )
            return removed
