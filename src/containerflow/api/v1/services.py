"""Service (project) endpoints.

A service is the group of containers named <prefix><name>-<n>. Groups are
recomputed from the engine on every request.
"""

from fastapi import APIRouter, Depends

from containerflow.api.dependencies import get_runtime
from containerflow.api.v1.schemas import (
    ChangeUrlRequest,
    ContainerResponse,
    CreateProjectRequest,
    RemovedResponse,
    ServiceGroupListResponse,
    ServiceGroupResponse,
)
from containerflow.stack import StackRuntime

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=ServiceGroupListResponse)
async def list_services(
    runtime: StackRuntime = Depends(get_runtime),
) -> ServiceGroupListResponse:
    groups = await runtime.list_service_groups()
    return ServiceGroupListResponse(
        services=[ServiceGroupResponse.from_group(group) for group in groups]
    )


@router.post("", status_code=201, response_model=ContainerResponse)
async def create_service(
    request: CreateProjectRequest,
    runtime: StackRuntime = Depends(get_runtime),
) -> ContainerResponse:
    """Create database, user and first instance of a new project."""
    live = await runtime.projects.create_project(request.name, request.domain)
    return ContainerResponse.from_live(live)


@router.get("/{name}", response_model=ServiceGroupResponse)
async def get_service(
    name: str,
    runtime: StackRuntime = Depends(get_runtime),
) -> ServiceGroupResponse:
    group = await runtime.projects.get_service_group(name)
    return ServiceGroupResponse.from_group(group)


@router.delete("/{name}", response_model=RemovedResponse)
async def delete_service(
    name: str,
    runtime: StackRuntime = Depends(get_runtime),
) -> RemovedResponse:
    """Delete every container, the volume and the database of a project."""
    removed = await runtime.projects.delete_project(name)
    return RemovedResponse(removed=removed)


@router.post("/{name}/instances", status_code=201, response_model=ContainerResponse)
async def add_instance(
    name: str,
    runtime: StackRuntime = Depends(get_runtime),
) -> ContainerResponse:
    """Scale up: clone the highest-numbered instance."""
    live = await runtime.projects.add_instance(name)
    return ContainerResponse.from_live(live)


@router.delete("/{name}/instances", response_model=RemovedResponse)
async def remove_instance(
    name: str,
    runtime: StackRuntime = Depends(get_runtime),
) -> RemovedResponse:
    """Scale down: remove the highest-numbered instance."""
    removed = await runtime.projects.remove_instance(name)
    return RemovedResponse(removed=[removed])


@router.put("/{name}/url", response_model=list[ContainerResponse])
async def change_service_url(
    name: str,
    request: ChangeUrlRequest,
    runtime: StackRuntime = Depends(get_runtime),
) -> list[ContainerResponse]:
    containers = await runtime.projects.change_project_url(name, request.domain)
    return [ContainerResponse.from_live(live) for live in containers]
