"""Fixtures for containerflow unit tests.

The container and network APIs are AsyncMock(spec=...) objects whose
methods delegate to a small in-memory engine, so tests can assert both
on calls and on the resulting engine state.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from containerflow.config import AppConfig, MySQLConfig, StackConfig
from containerflow.infra import (
    ContainerAPI,
    ContainerConfig,
    ContainerConflictError,
    ImageAPI,
    MySQLAdmin,
    NetworkAPI,
    NetworkConfig,
    NetworkInUseError,
    VolumeAPI,
)
from containerflow.stack import StackRuntime
from containerflow.stack.engine import StackEngine
from containerflow.stack.guard import OperationGuard
from containerflow.stack.naming import StackNaming
from containerflow.stack.spec import ContainerSpec


class FakeEngine:
    """In-memory Docker engine recording every mutating call in order."""

    def __init__(self) -> None:
        self.containers: dict[str, dict] = {}
        self.networks: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_start: set[str] = set()
        self.on_create: Callable[[dict], None] | None = None
        self._ids = itertools.count(1)

    # Containers

    def _find(self, name: str) -> dict | None:
        name = name.lstrip("/")
        if name in self.containers:
            return self.containers[name]
        for payload in self.containers.values():
            if payload["Name"].lstrip("/") == name:
                return payload
        return None

    def add_container(self, spec: ContainerSpec, running: bool = True, image_id: str | None = None) -> str:
        """Seed a container directly, bypassing call recording."""
        container_id = self._payload(spec.to_config(), image_id)["Id"]
        payload = self.containers[container_id]
        payload["State"] = {"Running": running, "Status": "running" if running else "exited"}
        return container_id

    def _payload(self, config: ContainerConfig, image_id: str | None = None) -> dict:
        api = config.to_api()
        container_id = f"c{next(self._ids):04d}"
        payload = {
            "Id": container_id,
            "Name": f"/{config.name}",
            "Image": image_id or f"sha256:{config.image.replace(':', '-')}",
            "Config": {
                "Image": api["Image"],
                "Env": api.get("Env"),
                "Labels": api.get("Labels"),
                "Cmd": api.get("Cmd"),
                "ExposedPorts": api.get("ExposedPorts"),
            },
            "HostConfig": api["HostConfig"],
            "State": {"Running": False, "Status": "created"},
            "NetworkSettings": {"Networks": {}},
        }
        mode = api["HostConfig"].get("NetworkMode")
        if mode not in (None, "", "default", "bridge"):
            payload["NetworkSettings"]["Networks"][mode] = {}
        self.containers[container_id] = payload
        return payload

    def by_name(self, name: str) -> dict | None:
        return self._find(name)

    async def list(self, filters: dict | None = None) -> list[dict]:
        result = []
        for payload in self.containers.values():
            name = payload["Name"].lstrip("/")
            labels = payload["Config"].get("Labels") or {}
            if filters:
                if any(part not in name for part in filters.get("name", [])):
                    continue
                wanted = [item.split("=", 1) for item in filters.get("label", [])]
                if any(labels.get(key) != value for key, value in wanted):
                    continue
            result.append(
                {"Id": payload["Id"], "Names": [f"/{name}"], "State": payload["State"]["Status"]}
            )
        return result

    async def inspect(self, name: str) -> dict | None:
        payload = self._find(name)
        return copy.deepcopy(payload) if payload else None

    async def create(self, config: ContainerConfig) -> str:
        if self._find(config.name) is not None:
            raise ContainerConflictError(f"Container {config.name} already exists")
        self.calls.append(("create", config.name))
        payload = self._payload(config)
        if self.on_create is not None:
            self.on_create(payload)
        return payload["Id"]

    async def start(self, name: str) -> None:
        payload = self._find(name)
        self.calls.append(("start", payload["Name"].lstrip("/")))
        if payload["Name"].lstrip("/") in self.fail_start:
            raise httpx.HTTPError("start failed")
        payload["State"] = {"Running": True, "Status": "running"}

    async def stop(self, name: str, timeout: int | None = None) -> None:
        payload = self._find(name)
        if payload is None:
            return
        self.calls.append(("stop", payload["Name"].lstrip("/")))
        payload["State"] = {"Running": False, "Status": "exited"}

    async def remove(self, name: str, force: bool = True, volumes: bool = False) -> None:
        payload = self._find(name)
        if payload is None:
            return
        self.calls.append(("remove", payload["Name"].lstrip("/")))
        del self.containers[payload["Id"]]

    # Networks

    def attached(self, network: str) -> list[str]:
        """Ids of containers with an endpoint on the network."""
        return [
            payload["Id"]
            for payload in self.containers.values()
            if network in payload["NetworkSettings"]["Networks"]
        ]

    async def network_inspect(self, name: str) -> dict | None:
        if name not in self.networks:
            return None
        data = copy.deepcopy(self.networks[name])
        data["Containers"] = {container_id: {} for container_id in self.attached(name)}
        return data

    async def network_create(self, config: NetworkConfig) -> str:
        self.calls.append(("network_create", config.name))
        network_id = f"n{next(self._ids):04d}"
        self.networks[config.name] = {"Id": network_id, "Name": config.name, "Driver": config.driver}
        return network_id

    async def network_disconnect(self, name: str, container: str, force: bool = True) -> None:
        payload = self._find(container)
        if payload is None:
            return
        self.calls.append(("network_disconnect", payload["Name"].lstrip("/")))
        payload["NetworkSettings"]["Networks"].pop(name, None)

    async def network_remove(self, name: str) -> None:
        if self.attached(name):
            raise NetworkInUseError(f"Network {name} has active endpoints")
        self.calls.append(("network_remove", name))
        self.networks.pop(name, None)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def mock_container_api(fake_engine: FakeEngine) -> AsyncMock:
    """ContainerAPI mock backed by the fake engine."""
    api = AsyncMock(spec=ContainerAPI)
    api.list = AsyncMock(side_effect=fake_engine.list)
    api.inspect = AsyncMock(side_effect=fake_engine.inspect)
    api.create = AsyncMock(side_effect=fake_engine.create)
    api.start = AsyncMock(side_effect=fake_engine.start)
    api.stop = AsyncMock(side_effect=fake_engine.stop)
    api.remove = AsyncMock(side_effect=fake_engine.remove)
    return api


@pytest.fixture
def mock_network_api(fake_engine: FakeEngine) -> AsyncMock:
    """NetworkAPI mock backed by the fake engine."""
    api = AsyncMock(spec=NetworkAPI)
    api.inspect = AsyncMock(side_effect=fake_engine.network_inspect)
    api.create = AsyncMock(side_effect=fake_engine.network_create)
    api.disconnect = AsyncMock(side_effect=fake_engine.network_disconnect)
    api.remove = AsyncMock(side_effect=fake_engine.network_remove)
    return api


@pytest.fixture
def mock_image_api() -> AsyncMock:
    """Mock ImageAPI for testing."""
    api = AsyncMock(spec=ImageAPI)
    api.exists = AsyncMock(return_value=True)
    api.pull = AsyncMock()
    api.ensure = AsyncMock()
    return api


@pytest.fixture
def mock_volume_api() -> AsyncMock:
    """Mock VolumeAPI for testing."""
    api = AsyncMock(spec=VolumeAPI)
    api.remove = AsyncMock()
    return api


@pytest.fixture
def mock_database() -> AsyncMock:
    """Mock MySQLAdmin for testing."""
    database = AsyncMock(spec=MySQLAdmin)
    database.ping = AsyncMock(return_value=True)
    database.create_database_with_user = AsyncMock()
    database.drop_database_and_user = AsyncMock()
    return database


@pytest.fixture
def app_config() -> AppConfig:
    """Config with defaults and a fast readiness poll."""
    return AppConfig(
        mysql=MySQLConfig(root_password="root-secret", readiness_retries=3, readiness_delay=0),
        stack=StackConfig(),
    )


@pytest.fixture
def naming(app_config: AppConfig) -> StackNaming:
    return StackNaming(app_config.stack)


@pytest.fixture
def guard() -> OperationGuard:
    return OperationGuard()


@pytest.fixture
def engine(
    mock_container_api: AsyncMock,
    mock_network_api: AsyncMock,
    mock_image_api: AsyncMock,
    mock_volume_api: AsyncMock,
) -> StackEngine:
    return StackEngine(mock_container_api, mock_network_api, mock_image_api, mock_volume_api)


@pytest.fixture
def runtime(
    app_config: AppConfig,
    mock_container_api: AsyncMock,
    mock_network_api: AsyncMock,
    mock_image_api: AsyncMock,
    mock_volume_api: AsyncMock,
    mock_database: AsyncMock,
) -> StackRuntime:
    """StackRuntime wired to the fake engine and mocked database."""
    return StackRuntime(
        config=app_config,
        containers=mock_container_api,
        networks=mock_network_api,
        images=mock_image_api,
        volumes=mock_volume_api,
        database=mock_database,
    )
