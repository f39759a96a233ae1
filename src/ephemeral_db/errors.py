"""Error types raised while provisioning ephemeral databases."""


class EphemeralDbError(RuntimeError):
    """Base class for every error raised by this package."""


class ConfigurationError(EphemeralDbError, ValueError):
    """Raised when connection or container parameters are malformed."""


class ContainerRuntimeError(EphemeralDbError):
    """Raised when the container runtime refuses a request."""


class StartupTimeoutError(EphemeralDbError, TimeoutError):
    """Raised when a container does not become healthy within its budget."""

    def __init__(self, container_name: str, elapsed: float, timeout: float):
        self.container_name = container_name
        self.elapsed = elapsed
        self.timeout = timeout
        super().__init__(
            f"Container '{container_name}' did not become healthy after "
            f"{elapsed:.1f}s (timeout {timeout:.1f}s)."
        )


class StartupCancelledError(EphemeralDbError):
    """Raised when the wait for a healthy container is cancelled."""

    def __init__(self, container_name: str, elapsed: float):
        self.container_name = container_name
        self.elapsed = elapsed
        super().__init__(
            f"Wait for container '{container_name}' was cancelled after {elapsed:.1f}s."
        )


class DbError(EphemeralDbError):
    """Raised when administrative SQL against the server fails."""

    def __init__(self, message: str, database_name: str | None = None):
        self.database_name = database_name
        super().__init__(message)


class FixtureStateError(EphemeralDbError):
    """Raised when a fixture operation is invoked in the wrong state."""
