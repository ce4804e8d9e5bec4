"""Typed container engine operations for the stack layer.

Wraps the raw Docker API clients: inspect payloads become LiveContainer /
LiveNetwork models and engine failures become DockerError carrying the
operation and target name.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from containerflow.errors import DockerError, NameCollisionError
from containerflow.infra import (
    ContainerAPI,
    ContainerConflictError,
    ImageAPI,
    NetworkAPI,
    NetworkInUseError,
    VolumeAPI,
)
from containerflow.metrics import DOCKER_ERRORS
from containerflow.stack.spec import ContainerSpec, LiveContainer, LiveNetwork, NetworkSpec

logger = logging.getLogger(__name__)


def _error_detail(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            message = exc.response.json().get("message")
        except ValueError:
            message = None
        return message or f"HTTP {exc.response.status_code}"
    return str(exc) or type(exc).__name__


@asynccontextmanager
async def engine_call(operation: str, target: str) -> AsyncIterator[None]:
    """Translate engine failures into DockerError."""
    try:
        yield
    except (httpx.HTTPError, NetworkInUseError) as exc:
        DOCKER_ERRORS.labels(operation=operation).inc()
        raise DockerError(operation, target, _error_detail(exc)) from exc


class StackEngine:
    """Container engine surface used by setup, recreation and projects."""

    def __init__(
        self,
        containers: ContainerAPI,
        networks: NetworkAPI,
        images: ImageAPI,
        volumes: VolumeAPI,
    ) -> None:
        self._containers = containers
        self._networks = networks
        self._images = images
        self._volumes = volumes

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    async def inspect_container(self, name: str) -> LiveContainer | None:
        async with engine_call("inspect", name):
            data = await self._containers.inspect(name)
        return LiveContainer.from_inspect(data) if data else None

    async def list_containers(self, filters: dict | None = None) -> list[dict]:
        async with engine_call("list", "containers"):
            return await self._containers.list(filters=filters)

    async def create_container(self, spec: ContainerSpec) -> str:
        """Pull the image if needed, create the container and return its id."""
        async with engine_call("pull", spec.image):
            await self._images.ensure(spec.image)
        try:
            async with engine_call("create", spec.name):
                return await self._containers.create(spec.to_config())
        except ContainerConflictError as exc:
            raise NameCollisionError(spec.name) from exc

    async def start_container(self, name: str) -> None:
        async with engine_call("start", name):
            await self._containers.start(name)

    async def stop_container(self, name: str) -> None:
        async with engine_call("stop", name):
            await self._containers.stop(name)

    async def remove_container(self, name: str) -> None:
        async with engine_call("remove", name):
            await self._containers.remove(name, force=True)

    async def teardown_container(self, container: LiveContainer) -> None:
        """Stop (when running) then remove. Named volumes survive."""
        if container.running:
            await self.stop_container(container.id)
        await self.remove_container(container.id)

    async def run_container(self, spec: ContainerSpec) -> str:
        """Create and start a container, removing it again if start fails."""
        container_id = await self.create_container(spec)
        try:
            await self.start_container(container_id)
        except DockerError:
            logger.warning("Start failed, removing new container %s", spec.name)
            await self.remove_container(container_id)
            raise
        return container_id

    # -------------------------------------------------------------------------
    # Networks
    # -------------------------------------------------------------------------

    async def inspect_network(self, name: str) -> LiveNetwork | None:
        async with engine_call("inspect", name):
            data = await self._networks.inspect(name)
        return LiveNetwork.from_inspect(data) if data else None

    async def create_network(self, spec: NetworkSpec) -> str:
        async with engine_call("create", spec.name):
            return await self._networks.create(spec.to_config())

    async def remove_network(self, network: LiveNetwork) -> None:
        """Force-disconnect every attached container, then remove the network.

        The engine refuses to remove a network with endpoints. Disconnected
        containers keep running without that network.
        """
        for container in network.endpoints:
            async with engine_call("disconnect", container):
                await self._networks.disconnect(network.name, container, force=True)
        async with engine_call("remove", network.name):
            await self._networks.remove(network.name)

    # -------------------------------------------------------------------------
    # Volumes
    # -------------------------------------------------------------------------

    async def remove_volume(self, name: str) -> None:
        async with engine_call("remove", name):
            await self._volumes.remove(name)
