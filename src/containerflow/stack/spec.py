"""Desired and live resource models.

ContainerSpec is the transient desired configuration of a container. It is
built from presets or recovered from an inspect payload, mutated by copy,
and converted to the engine wire model only when a container is created.
"""

from pydantic import BaseModel

from containerflow.infra import ContainerConfig, HostConfig, NetworkConfig


class ContainerSpec(BaseModel):
    """Desired container configuration."""

    name: str
    image: str
    env: list[str] = []
    labels: dict[str, str] = {}
    cmd: list[str] = []
    binds: list[str] = []
    exposed_ports: dict[str, dict] = {}
    port_bindings: dict[str, list[dict[str, str]]] = {}
    restart_policy: str = ""
    network: str | None = None

    model_config = {"frozen": True}

    def env_value(self, key: str) -> str | None:
        """Return the value of an env entry, or None when unset."""
        prefix = f"{key}="
        for entry in self.env:
            if entry.startswith(prefix):
                return entry[len(prefix) :]
        return None

    def with_env(self, updates: dict[str, str]) -> "ContainerSpec":
        """Return a copy with env entries replaced by key, keeping order."""
        env = []
        pending = dict(updates)
        for entry in self.env:
            key = entry.split("=", 1)[0]
            if key in pending:
                env.append(f"{key}={pending.pop(key)}")
            else:
                env.append(entry)
        env.extend(f"{key}={value}" for key, value in pending.items())
        return self.model_copy(update={"env": env}, deep=True)

    def to_config(self) -> ContainerConfig:
        """Convert to the Docker create payload model."""
        return ContainerConfig(
            image=self.image,
            name=self.name,
            cmd=self.cmd,
            env=self.env,
            labels=self.labels,
            exposed_ports=self.exposed_ports,
            host_config=HostConfig(
                network_mode=self.network or "bridge",
                binds=self.binds,
                port_bindings=self.port_bindings,
                restart_policy=self.restart_policy,
            ),
        )

    @classmethod
    def from_inspect(cls, data: dict) -> "ContainerSpec":
        """Recover the spec a container was created with.

        Config.Image is the reference the container was created from (the
        repo-tag), not the resolved image id.
        """
        config = data.get("Config") or {}
        host = data.get("HostConfig") or {}
        network = host.get("NetworkMode")
        return cls(
            name=data.get("Name", "").lstrip("/"),
            image=config.get("Image") or "",
            env=config.get("Env") or [],
            labels=config.get("Labels") or {},
            cmd=config.get("Cmd") or [],
            binds=host.get("Binds") or [],
            exposed_ports=config.get("ExposedPorts") or {},
            port_bindings=host.get("PortBindings") or {},
            restart_policy=(host.get("RestartPolicy") or {}).get("Name", ""),
            network=None if network in (None, "", "default") else network,
        )


class LiveContainer(BaseModel):
    """Inspected container."""

    id: str
    image_id: str
    running: bool
    state: str
    spec: ContainerSpec

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return self.spec.name

    @classmethod
    def from_inspect(cls, data: dict) -> "LiveContainer":
        state = data.get("State") or {}
        return cls(
            id=data.get("Id", ""),
            image_id=data.get("Image", ""),
            running=state.get("Running", False),
            state=state.get("Status", "unknown"),
            spec=ContainerSpec.from_inspect(data),
        )


class NetworkSpec(BaseModel):
    """Desired network configuration."""

    name: str
    driver: str = "bridge"

    model_config = {"frozen": True}

    def to_config(self) -> NetworkConfig:
        return NetworkConfig(name=self.name, driver=self.driver)


class LiveNetwork(BaseModel):
    """Inspected network."""

    id: str
    name: str
    driver: str
    # Ids of attached containers
    endpoints: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @classmethod
    def from_inspect(cls, data: dict) -> "LiveNetwork":
        return cls(
            id=data.get("Id", ""),
            name=data.get("Name", ""),
            driver=data.get("Driver", ""),
            endpoints=tuple(data.get("Containers") or {}),
        )
