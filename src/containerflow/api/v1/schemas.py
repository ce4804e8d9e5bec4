"""API request/response schemas."""

from pydantic import BaseModel, Field

from containerflow.stack.grouping import ServiceGroup, container_url
from containerflow.stack.spec import LiveContainer

# =============================================================================
# Requests
# =============================================================================


class SetupRequest(BaseModel):
    """Setup request."""

    force: bool = False


class CreateProjectRequest(BaseModel):
    """Create project request."""

    name: str = Field(min_length=1, max_length=48)
    domain: str | None = None


class ChangeUrlRequest(BaseModel):
    """Change URL request."""

    domain: str = Field(min_length=1, max_length=253)


# =============================================================================
# Responses
# =============================================================================


class ContainerResponse(BaseModel):
    """Container summary."""

    id: str
    name: str
    image: str
    running: bool
    state: str
    url: str | None = None

    @classmethod
    def from_live(cls, live: LiveContainer) -> "ContainerResponse":
        return cls(
            id=live.id,
            name=live.name,
            image=live.spec.image,
            running=live.running,
            state=live.state,
            url=container_url(live),
        )


class InstanceResponse(BaseModel):
    """Service instance."""

    number: int
    container: ContainerResponse


class ServiceGroupResponse(BaseModel):
    """Service group."""

    name: str
    instances: list[InstanceResponse]
    db_name: str | None
    db_user: str | None
    url: str | None
    conflicts: list[str]
    next_instance_number: int

    @classmethod
    def from_group(cls, group: ServiceGroup) -> "ServiceGroupResponse":
        return cls(
            name=group.name,
            instances=[
                InstanceResponse(
                    number=instance.number,
                    container=ContainerResponse.from_live(instance.container),
                )
                for instance in group.instances
            ],
            db_name=group.db_name,
            db_user=group.db_user,
            url=group.url,
            conflicts=group.conflicts,
            next_instance_number=group.next_instance_number,
        )


class ServiceGroupListResponse(BaseModel):
    """Service group list."""

    services: list[ServiceGroupResponse]


class RemovedResponse(BaseModel):
    """Removal result."""

    removed: list[str]
