"""Container recreation endpoints."""

from fastapi import APIRouter, Depends, Query

from containerflow.api.dependencies import get_runtime
from containerflow.api.v1.schemas import ChangeUrlRequest, ContainerResponse
from containerflow.stack import StackRuntime

router = APIRouter(prefix="/containers", tags=["containers"])


@router.post("/{container}/clone", status_code=201, response_model=ContainerResponse)
async def clone_container(
    container: str,
    overwrite: bool = Query(default=False),
    runtime: StackRuntime = Depends(get_runtime),
) -> ContainerResponse:
    """Start a new instance next to the container (source keeps running)."""
    live = await runtime.recreation.clone(container, overwrite=overwrite)
    return ContainerResponse.from_live(live)


@router.post("/{container}/url", response_model=ContainerResponse)
async def change_container_url(
    container: str,
    request: ChangeUrlRequest,
    runtime: StackRuntime = Depends(get_runtime),
) -> ContainerResponse:
    """Recreate the container with its routing rule pointed at a new domain."""
    live = await runtime.recreation.change_url(container, request.domain)
    return ContainerResponse.from_live(live)
