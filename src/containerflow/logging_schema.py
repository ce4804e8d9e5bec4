"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.CONTAINER_STARTED, ...})
    """

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # Container events
    CONTAINER_CREATED = "container_created"
    CONTAINER_STARTED = "container_started"
    CONTAINER_STOPPED = "container_stopped"
    CONTAINER_REMOVED = "container_removed"

    # Network / image / volume events
    NETWORK_CREATED = "network_created"
    NETWORK_REMOVED = "network_removed"
    NETWORK_DISCONNECTED = "network_disconnected"
    IMAGE_PULLED = "image_pulled"
    VOLUME_REMOVED = "volume_removed"

    # Validation
    VALIDATION_MISMATCH = "validation_mismatch"
    GROUP_CONFLICT = "group_conflict"

    # Setup session
    SETUP_STARTED = "setup_started"
    SETUP_COMPLETED = "setup_completed"
    SETUP_FAILED = "setup_failed"
    STEP_TRANSITION = "step_transition"
    DATABASE_NOT_READY = "database_not_ready"

    # Recreation
    RECREATE_STARTED = "recreate_started"
    RECREATE_COMPLETED = "recreate_completed"
    RECREATE_ROLLED_BACK = "recreate_rolled_back"
    RECREATE_FAILED = "recreate_failed"
    RECREATE_RESTORED = "recreate_restored"

    # Projects
    PROJECT_CREATED = "project_created"
    PROJECT_DELETED = "project_deleted"
    DATABASE_CREATED = "database_created"
    DATABASE_DROPPED = "database_dropped"
    CLEANUP_FAILED = "cleanup_failed"

    # Error events
    UNHANDLED_EXCEPTION = "unhandled_exception"
    STACK_ERROR = "stack_error"
    BACKGROUND_TASK_FAILED = "background_task_failed"
