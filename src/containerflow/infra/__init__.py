"""Infrastructure layer: container engine and database clients."""

from containerflow.infra.docker import (
    ContainerAPI,
    ContainerConfig,
    ContainerConflictError,
    DockerClient,
    HostConfig,
    ImageAPI,
    NetworkAPI,
    NetworkConfig,
    NetworkInUseError,
    VolumeAPI,
    close_docker,
    get_docker_client,
)
from containerflow.infra.mysql import MySQLAdmin

__all__ = [
    # Docker
    "ContainerAPI",
    "ContainerConfig",
    "ContainerConflictError",
    "DockerClient",
    "HostConfig",
    "ImageAPI",
    "NetworkAPI",
    "NetworkConfig",
    "NetworkInUseError",
    "VolumeAPI",
    "close_docker",
    "get_docker_client",
    # MySQL
    "MySQLAdmin",
]
