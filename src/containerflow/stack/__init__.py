"""Hosting stack runtime."""

from containerflow.config import AppConfig, get_config
from containerflow.infra import ContainerAPI, ImageAPI, MySQLAdmin, NetworkAPI, VolumeAPI
from containerflow.stack.engine import StackEngine
from containerflow.stack.grouping import ServiceGroup
from containerflow.stack.guard import OperationGuard
from containerflow.stack.naming import StackNaming
from containerflow.stack.projects import ProjectService
from containerflow.stack.recreate import RecreationEngine
from containerflow.stack.setup import ProgressCallback, SetupOrchestrator, SetupResult


class StackRuntime:
    """Stack runtime combining setup, recreation and project management.

    All collaborators are injectable; the defaults talk to the configured
    Docker engine and MySQL server. One runtime owns one OperationGuard, so
    every operation started through it is single-flight.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        containers: ContainerAPI | None = None,
        networks: NetworkAPI | None = None,
        images: ImageAPI | None = None,
        volumes: VolumeAPI | None = None,
        database: MySQLAdmin | None = None,
    ) -> None:
        self._config = config or get_config()
        self.naming = StackNaming(self._config.stack)
        self.guard = OperationGuard()
        self.database = database or MySQLAdmin(self._config.mysql)
        self.engine = StackEngine(
            containers or ContainerAPI(),
            networks or NetworkAPI(),
            images or ImageAPI(),
            volumes or VolumeAPI(),
        )

        self.setup = SetupOrchestrator(self._config, self.engine, self.database, self.guard)
        self.recreation = RecreationEngine(self.engine, self.guard, self.naming)
        self.projects = ProjectService(
            self._config,
            self.naming,
            self.engine,
            self.recreation,
            self.database,
            self.guard,
        )

    async def run_setup(
        self, force: bool = False, progress: ProgressCallback | None = None
    ) -> SetupResult:
        return await self.setup.run(force=force, progress=progress)

    async def list_service_groups(self) -> list[ServiceGroup]:
        return await self.projects.list_service_groups()


__all__ = [
    "StackRuntime",
    "StackEngine",
    "StackNaming",
    "OperationGuard",
    "SetupOrchestrator",
    "RecreationEngine",
    "ProjectService",
]
