"""API dependencies for dependency injection."""

from containerflow.stack import StackRuntime

# Singleton runtime instance
_runtime: StackRuntime | None = None


def init_runtime() -> None:
    """Initialize runtime singleton.

    Must be called during app startup. Construction performs no I/O.
    """
    global _runtime
    _runtime = StackRuntime()


def get_runtime() -> StackRuntime:
    """Get runtime singleton.

    Returns:
        StackRuntime instance shared across all API endpoints.

    Raises:
        RuntimeError: If called before init_runtime().
    """
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Call init_runtime() first.")
    return _runtime


def reset_runtime() -> None:
    """Reset runtime singleton (for testing)."""
    global _runtime
    _runtime = None
