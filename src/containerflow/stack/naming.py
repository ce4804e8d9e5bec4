"""Naming conventions and label grammar for the hosting stack.

Instance names:    <site_prefix><project>-<digits>   e.g. wordpress-blog-2
                   (a name without the suffix counts as instance 1)
Routing rule:      Host("<domain>")                  on traefik.http.routers.<project>.rule
Data volume:       <site_prefix><project>-data
Database/user:     wp_<project with non-alphanumerics replaced by _>
"""

import re

from containerflow.config import StackConfig

_INSTANCE_SUFFIX = re.compile(r"^(?P<base>.+?)-(?P<number>\d+)$")
_HOST_RULE = re.compile(r"""^Host\((?P<quote>["`])(?P<domain>[^"`]+)(?P=quote)\)$""")
_DOMAIN = re.compile(
    r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*$"
)
_PROJECT = re.compile(r"^[a-z0-9]([a-z0-9-]{0,46}[a-z0-9])?$")


def parse_instance_name(name: str) -> tuple[str, int]:
    """Split a container name into (base, instance number)."""
    match = _INSTANCE_SUFFIX.match(name)
    if match is None:
        return name, 1
    number = int(match.group("number"))
    if number < 1:
        return name, 1
    return match.group("base"), number


def format_instance_name(base: str, number: int) -> str:
    if number < 1:
        raise ValueError(f"Instance numbers start at 1, got {number}")
    return f"{base}-{number}"


def next_instance_number(numbers: list[int]) -> int:
    """Next free instance number: one past the highest in use."""
    return max(numbers, default=0) + 1


def host_rule(domain: str) -> str:
    return f'Host("{domain}")'


def parse_host_rule(rule: str) -> str | None:
    """Return the domain of a single-host rule, or None for anything else."""
    match = _HOST_RULE.match(rule.strip())
    return match.group("domain") if match else None


def is_host_rule(rule: str) -> bool:
    return "Host(" in rule


def is_valid_domain(domain: str) -> bool:
    return bool(_DOMAIN.match(domain))


def is_valid_project_name(name: str) -> bool:
    return bool(_PROJECT.match(name))


def sanitize_identifier(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", name)


class StackNaming:
    """Centralized naming conventions for stack resources."""

    def __init__(self, config: StackConfig) -> None:
        self._prefix = config.site_prefix
        self._namespace = config.label_namespace

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def project_label(self) -> str:
        return f"{self._namespace}.name"

    @property
    def type_label(self) -> str:
        return f"{self._namespace}.type"

    def instance_name(self, project: str, number: int) -> str:
        return format_instance_name(f"{self._prefix}{project}", number)

    def volume_name(self, project: str) -> str:
        return f"{self._prefix}{project}-data"

    def database_name(self, project: str) -> str:
        return f"wp_{sanitize_identifier(project)}"

    def database_user(self, project: str) -> str:
        return f"wp_{sanitize_identifier(project)}"

    def router_key(self, project: str) -> str:
        return f"traefik.http.routers.{project}"

    def service_key(self, project: str) -> str:
        return f"traefik.http.services.{project}"

    def project_from_container(self, container_name: str) -> tuple[str, int] | None:
        """Return (project, instance number) for a site container name."""
        name = container_name.lstrip("/")
        if not name.startswith(self._prefix):
            return None
        base, number = parse_instance_name(name)
        project = base[len(self._prefix) :]
        if not project:
            return None
        return project, number
