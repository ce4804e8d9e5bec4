"""Error handling module for containerflow.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "NAME_COLLISION",
        "message": "Container wordpress-blog-3 already exists"
    }
}

Usage:
    from containerflow.errors import NameCollisionError

    raise NameCollisionError("wordpress-blog-3")
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    RESOURCE_MISMATCH = "RESOURCE_MISMATCH"
    PROVISIONING_STEP_FAILED = "PROVISIONING_STEP_FAILED"
    READINESS_TIMEOUT = "READINESS_TIMEOUT"
    NAME_COLLISION = "NAME_COLLISION"
    VALIDATION_POST_CONDITION = "VALIDATION_POST_CONDITION"
    CONTAINER_NOT_FOUND = "CONTAINER_NOT_FOUND"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    LAST_INSTANCE = "LAST_INSTANCE"
    OPERATION_IN_PROGRESS = "OPERATION_IN_PROGRESS"
    INVALID_REQUEST = "INVALID_REQUEST"
    DOCKER_ERROR = "DOCKER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class StackError(Exception):
    """Base exception for containerflow.

    All stack-specific exceptions inherit from this class so the HTTP
    layer can translate them in a single handler.

    Attributes:
        code: The error code from ErrorCode enum.
        message: Human-readable error message.
        status_code: HTTP status code to return.
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class ResourceMismatchError(StackError):
    """409 Conflict - Live resource does not satisfy the desired spec.

    Recoverable by re-running with force.
    """

    def __init__(self, resource: str, message: str | None = None) -> None:
        self.resource = resource
        super().__init__(
            ErrorCode.RESOURCE_MISMATCH,
            message
            or f"{resource} exists but has invalid configuration. Use force=true to recreate.",
            409,
        )


class ProvisioningStepError(StackError):
    """502 Bad Gateway - An engine call inside a setup step failed."""

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(ErrorCode.PROVISIONING_STEP_FAILED, message, 502)


class ReadinessTimeoutError(StackError):
    """504 Gateway Timeout - Database never reported healthy."""

    def __init__(self, step_id: str, attempts: int) -> None:
        self.step_id = step_id
        self.attempts = attempts
        super().__init__(
            ErrorCode.READINESS_TIMEOUT,
            f"Database is not ready after {attempts} attempts",
            504,
        )


class NameCollisionError(StackError):
    """409 Conflict - Desired container name already in use."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            ErrorCode.NAME_COLLISION, f"Container {name} already exists", 409
        )


class ValidationPostConditionError(StackError):
    """500 Internal Server Error - New container failed post-condition validation.

    The new container has already been removed when this is raised.

    Attributes:
        container: Name of the rolled back container.
        restored: Whether a container removed for an in-place change was
            recreated from its previous spec.
    """

    def __init__(self, container: str, restored: bool = False) -> None:
        self.container = container
        self.restored = restored
        message = f"Container {container} failed validation after creation and was removed"
        if restored:
            message += "; previous configuration restored"
        super().__init__(ErrorCode.VALIDATION_POST_CONDITION, message, 500)


class ContainerNotFoundError(StackError):
    """404 Not Found - Container not found."""

    def __init__(self, container: str) -> None:
        self.container = container
        super().__init__(
            ErrorCode.CONTAINER_NOT_FOUND, f"Container {container} not found", 404
        )


class ServiceNotFoundError(StackError):
    """404 Not Found - No container belongs to the service."""

    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(
            ErrorCode.SERVICE_NOT_FOUND, f"Service {service} not found", 404
        )


class LastInstanceError(StackError):
    """409 Conflict - Refusing to remove the last instance of a service."""

    def __init__(self, service: str) -> None:
        self.service = service
        super().__init__(
            ErrorCode.LAST_INSTANCE,
            f"Service {service} has a single instance; delete the project instead",
            409,
        )


class OperationInProgressError(StackError):
    """409 Conflict - Another stack operation is running in this process."""

    def __init__(self, running: str) -> None:
        self.running = running
        super().__init__(
            ErrorCode.OPERATION_IN_PROGRESS,
            f"Operation {running} is already in progress",
            409,
        )


class InvalidRequestError(StackError):
    """422 Unprocessable Entity - Invalid project name or domain."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(ErrorCode.INVALID_REQUEST, message, 422)


class DockerError(StackError):
    """502 Bad Gateway - Container engine call failed.

    Attributes:
        operation: Engine operation that failed (create, start, ...).
        container: Container or network the call targeted.
    """

    def __init__(self, operation: str, container: str, detail: str) -> None:
        self.operation = operation
        self.container = container
        super().__init__(
            ErrorCode.DOCKER_ERROR,
            f"Docker {operation} failed for {container}: {detail}",
            502,
        )


class DatabaseError(StackError):
    """502 Bad Gateway - Database administration failed."""

    def __init__(self, message: str = "Database operation failed") -> None:
        super().__init__(ErrorCode.DATABASE_ERROR, message, 502)
