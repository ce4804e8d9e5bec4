"""Docker Engine API client.

Provides async Docker API access for containers, networks, images and volumes.
Supports both Unix socket and TCP connections.
"""

import json
import logging

import httpx
from pydantic import BaseModel

from containerflow.config import get_config
from containerflow.logging_schema import LogEvent

logger = logging.getLogger(__name__)

_docker_config = get_config().docker


class ContainerConflictError(Exception):
    """Raised when a container name is already taken."""

    pass


class NetworkInUseError(Exception):
    """Raised when trying to remove a network with attached containers."""

    pass


# =============================================================================
# Pydantic Models
# =============================================================================


class HostConfig(BaseModel):
    """Docker HostConfig for container creation."""

    network_mode: str = "bridge"
    binds: list[str] = []
    port_bindings: dict[str, list[dict[str, str]]] = {}
    restart_policy: str = ""

    model_config = {"frozen": True}

    def to_api(self) -> dict:
        """Convert to Docker API format."""
        result: dict = {
            "NetworkMode": self.network_mode,
            "Binds": self.binds,
        }
        if self.port_bindings:
            result["PortBindings"] = self.port_bindings
        if self.restart_policy:
            result["RestartPolicy"] = {"Name": self.restart_policy, "MaximumRetryCount": 0}
        return result


class ContainerConfig(BaseModel):
    """Docker container configuration for creation."""

    image: str
    name: str
    cmd: list[str] = []
    env: list[str] = []
    labels: dict[str, str] = {}
    exposed_ports: dict[str, dict] = {}
    host_config: HostConfig = HostConfig()

    model_config = {"frozen": True}

    def to_api(self) -> dict:
        """Convert to Docker API JSON format."""
        result: dict = {
            "Image": self.image,
            "ExposedPorts": self.exposed_ports,
            "HostConfig": self.host_config.to_api(),
        }
        # Omitted Cmd keeps the image default
        if self.cmd:
            result["Cmd"] = self.cmd
        if self.env:
            result["Env"] = self.env
        if self.labels:
            result["Labels"] = self.labels
        return result


class NetworkConfig(BaseModel):
    """Docker network configuration for creation."""

    name: str
    driver: str = "bridge"
    labels: dict[str, str] = {}

    model_config = {"frozen": True}

    def to_api(self) -> dict:
        """Convert to Docker API format."""
        result: dict = {"Name": self.name, "Driver": self.driver, "CheckDuplicate": True}
        if self.labels:
            result["Labels"] = self.labels
        return result


# =============================================================================
# Docker Client
# =============================================================================


class DockerClient:
    """Async Docker API client."""

    def __init__(self, docker_host: str | None = None) -> None:
        self._host = docker_host or _docker_config.host
        self._client: httpx.AsyncClient | None = None

    def _create_client(self) -> httpx.AsyncClient:
        """Create a new HTTP client."""
        timeout = _docker_config.api_timeout
        if self._host.startswith("unix://"):
            socket_path = self._host.replace("unix://", "")
            transport = httpx.AsyncHTTPTransport(uds=socket_path)
            return httpx.AsyncClient(
                transport=transport,
                base_url="http://localhost",
                timeout=timeout,
            )
        else:
            base_url = self._host
            if base_url.startswith("tcp://"):
                base_url = base_url.replace("tcp://", "http://")
            return httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def get(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


# Global singleton
_docker_client: DockerClient | None = None


def get_docker_client() -> DockerClient:
    """Get the global Docker client singleton."""
    global _docker_client
    if _docker_client is None:
        _docker_client = DockerClient()
    return _docker_client


async def close_docker() -> None:
    """Close the global Docker client."""
    global _docker_client
    if _docker_client:
        await _docker_client.close()
        _docker_client = None


# =============================================================================
# Container API
# =============================================================================


class ContainerAPI:
    """Docker Container API operations."""

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def list(self, filters: dict | None = None) -> list[dict]:
        """List containers (running and stopped)."""
        client = await self._docker.get()
        params: dict = {"all": "true"}
        if filters:
            params["filters"] = json.dumps(filters)
        resp = await client.get("/containers/json", params=params)
        resp.raise_for_status()
        return resp.json()

    async def inspect(self, name: str) -> dict | None:
        """Inspect a container by id or name."""
        client = await self._docker.get()
        resp = await client.get(f"/containers/{name}/json")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def create(self, config: ContainerConfig) -> str:
        """Create a container and return its id.

        Raises:
            ContainerConflictError: If the name is already in use.
        """
        client = await self._docker.get()
        resp = await client.post(
            "/containers/create",
            params={"name": config.name},
            json=config.to_api(),
        )
        if resp.status_code == 409:
            raise ContainerConflictError(f"Container {config.name} already exists")
        resp.raise_for_status()
        container_id = resp.json()["Id"]
        logger.info(
            "Created container: %s",
            config.name,
            extra={"event": LogEvent.CONTAINER_CREATED, "container": config.name},
        )
        return container_id

    async def start(self, name: str) -> None:
        """Start a container."""
        client = await self._docker.get()
        resp = await client.post(f"/containers/{name}/start")
        if resp.status_code not in (204, 304):
            resp.raise_for_status()
        logger.info(
            "Started container: %s",
            name,
            extra={"event": LogEvent.CONTAINER_STARTED, "container": name},
        )

    async def stop(self, name: str, timeout: int | None = None) -> None:
        """Stop a container."""
        if timeout is None:
            timeout = _docker_config.stop_timeout
        client = await self._docker.get()
        resp = await client.post(
            f"/containers/{name}/stop",
            params={"t": str(timeout)},
            # Engine waits up to `timeout` before answering
            timeout=_docker_config.api_timeout + timeout,
        )
        if resp.status_code not in (204, 304, 404):
            resp.raise_for_status()
        logger.info(
            "Stopped container: %s",
            name,
            extra={"event": LogEvent.CONTAINER_STOPPED, "container": name},
        )

    async def remove(self, name: str, force: bool = True, volumes: bool = False) -> None:
        """Remove a container.

        Named volumes are never removed here; volumes=True only drops the
        container's anonymous volumes.
        """
        client = await self._docker.get()
        resp = await client.delete(
            f"/containers/{name}",
            params={
                "force": "true" if force else "false",
                "v": "true" if volumes else "false",
            },
        )
        if resp.status_code == 404:
            logger.debug("Container not found: %s", name)
            return
        resp.raise_for_status()
        logger.info(
            "Removed container: %s",
            name,
            extra={"event": LogEvent.CONTAINER_REMOVED, "container": name},
        )


# =============================================================================
# Network API
# =============================================================================


class NetworkAPI:
    """Docker Network API operations."""

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def inspect(self, name: str) -> dict | None:
        """Inspect a network by id or name."""
        client = await self._docker.get()
        resp = await client.get(f"/networks/{name}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def create(self, config: NetworkConfig) -> str:
        """Create a network and return its id."""
        client = await self._docker.get()
        resp = await client.post("/networks/create", json=config.to_api())
        resp.raise_for_status()
        logger.info(
            "Created network: %s",
            config.name,
            extra={"event": LogEvent.NETWORK_CREATED, "network": config.name},
        )
        return resp.json()["Id"]

    async def disconnect(self, name: str, container: str, force: bool = True) -> None:
        """Detach a container from a network. Missing either side is a no-op."""
        client = await self._docker.get()
        resp = await client.post(
            f"/networks/{name}/disconnect",
            json={"Container": container, "Force": force},
        )
        if resp.status_code == 404:
            logger.debug("Nothing to disconnect: %s from %s", container, name)
            return
        resp.raise_for_status()
        logger.info(
            "Disconnected %s from network %s",
            container,
            name,
            extra={"event": LogEvent.NETWORK_DISCONNECTED, "network": name, "container": container},
        )

    async def remove(self, name: str) -> None:
        """Remove a network. Fails with NetworkInUseError while endpoints remain."""
        client = await self._docker.get()
        resp = await client.delete(f"/networks/{name}")
        if resp.status_code == 404:
            logger.debug("Network not found: %s", name)
            return
        if resp.status_code == 403:
            raise NetworkInUseError(f"Network {name} has active endpoints")
        resp.raise_for_status()
        logger.info(
            "Removed network: %s",
            name,
            extra={"event": LogEvent.NETWORK_REMOVED, "network": name},
        )


# =============================================================================
# Volume API
# =============================================================================


class VolumeAPI:
    """Docker Volume API operations."""

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def remove(self, name: str) -> None:
        """Remove a named volume."""
        client = await self._docker.get()
        resp = await client.delete(f"/volumes/{name}")
        if resp.status_code == 404:
            logger.debug("Volume not found: %s", name)
            return
        resp.raise_for_status()
        logger.info(
            "Removed volume: %s",
            name,
            extra={"event": LogEvent.VOLUME_REMOVED, "volume": name},
        )


# =============================================================================
# Image API
# =============================================================================


class ImageAPI:
    """Docker Image API operations."""

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def exists(self, image_ref: str) -> bool:
        """Check if image exists locally."""
        client = await self._docker.get()
        resp = await client.get(f"/images/{image_ref}/json")
        return resp.status_code == 200

    async def pull(self, image_ref: str) -> None:
        """Pull image from registry."""
        client = await self._docker.get()

        if ":" in image_ref.rsplit("/", 1)[-1]:
            image, tag = image_ref.rsplit(":", 1)
        else:
            image, tag = image_ref, "latest"

        logger.info("Pulling image: %s:%s", image, tag)

        resp = await client.post(
            "/images/create",
            params={"fromImage": image, "tag": tag},
            timeout=_docker_config.image_pull_timeout,
        )
        resp.raise_for_status()
        logger.info(
            "Pulled image: %s:%s",
            image,
            tag,
            extra={"event": LogEvent.IMAGE_PULLED, "image": image_ref},
        )

    async def ensure(self, image_ref: str) -> None:
        """Ensure image exists locally, pull if not."""
        if not await self.exists(image_ref):
            await self.pull(image_ref)
