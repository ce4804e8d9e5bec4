"""Service grouping: projects derived from the flat container list.

A group is a view recomputed on every query. Containers named
<prefix><project>-<n> share the group <project>; database and URL settings
must agree across the group and any disagreement is reported in
`conflicts` instead of being resolved.
"""

import logging
from collections import defaultdict

from pydantic import BaseModel

from containerflow.logging_schema import LogEvent
from containerflow.stack.naming import (
    StackNaming,
    next_instance_number,
    parse_host_rule,
)
from containerflow.stack.spec import LiveContainer

logger = logging.getLogger(__name__)

DB_NAME_ENV = "WORDPRESS_DB_NAME"
DB_USER_ENV = "WORDPRESS_DB_USER"


class ServiceInstance(BaseModel):
    """A container of a group with its parsed instance number."""

    number: int
    container: LiveContainer

    model_config = {"frozen": True}


class ServiceGroup(BaseModel):
    """Containers of one project."""

    name: str
    instances: list[ServiceInstance]
    db_name: str | None = None
    db_user: str | None = None
    url: str | None = None
    conflicts: list[str] = []

    @property
    def consistent(self) -> bool:
        return not self.conflicts

    @property
    def instance_numbers(self) -> list[int]:
        return [instance.number for instance in self.instances]

    @property
    def next_instance_number(self) -> int:
        return next_instance_number(self.instance_numbers)

    @property
    def highest(self) -> ServiceInstance:
        """Instance with the highest number (the one scaled down first)."""
        return max(self.instances, key=lambda instance: instance.number)


def container_url(container: LiveContainer) -> str | None:
    """Domain of the first Host(...) router rule on the container."""
    for key in sorted(container.spec.labels):
        if key.startswith("traefik.http.routers.") and key.endswith(".rule"):
            domain = parse_host_rule(container.spec.labels[key])
            if domain:
                return domain
    return None


def _agreed(values: list[str | None]) -> tuple[str | None, bool]:
    """Return (value, agreed). Divergent values yield (None, False)."""
    distinct = set(values)
    if len(distinct) > 1:
        return None, False
    return values[0] if values else None, True


def group_services(containers: list[LiveContainer], naming: StackNaming) -> list[ServiceGroup]:
    """Group site containers by project.

    Containers outside the site prefix are ignored. Groups are sorted by
    name and instances by number.
    """
    buckets: dict[str, list[ServiceInstance]] = defaultdict(list)
    for container in containers:
        parsed = naming.project_from_container(container.name)
        if parsed is None:
            continue
        project, number = parsed
        buckets[project].append(ServiceInstance(number=number, container=container))

    groups = []
    for project in sorted(buckets):
        instances = sorted(buckets[project], key=lambda instance: instance.number)
        conflicts: list[str] = []

        numbers = [instance.number for instance in instances]
        if len(set(numbers)) != len(numbers):
            conflicts.append("instance_number")

        db_name, ok = _agreed([i.container.spec.env_value(DB_NAME_ENV) for i in instances])
        if not ok:
            conflicts.append("db_name")
        db_user, ok = _agreed([i.container.spec.env_value(DB_USER_ENV) for i in instances])
        if not ok:
            conflicts.append("db_user")
        url, ok = _agreed([container_url(i.container) for i in instances])
        if not ok:
            conflicts.append("url")

        if conflicts:
            logger.warning(
                "Service %s instances disagree on %s",
                project,
                ", ".join(conflicts),
                extra={"event": LogEvent.GROUP_CONFLICT, "service": project, "fields": conflicts},
            )

        groups.append(
            ServiceGroup(
                name=project,
                instances=instances,
                db_name=db_name,
                db_user=db_user,
                url=url,
                conflicts=conflicts,
            )
        )
    return groups


def find_group(groups: list[ServiceGroup], name: str) -> ServiceGroup | None:
    for group in groups:
        if group.name == name:
            return group
    return None
