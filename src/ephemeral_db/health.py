"""Health probing for database server containers."""
import logging

from .db.base import DatabaseProvisioner
from .errors import ConfigurationError
from .models import ConnectionDescriptor, HealthStatus

logger = logging.getLogger(__name__)


class HealthPoller:
    """Decides whether a database server accepts administrative connections."""

    def __init__(self, provisioner: DatabaseProvisioner, probe_timeout: int = 5):
        """
        Initialize the poller.

        Args:
            provisioner: Engine provisioner used to open probe connections
                and to classify their failures.
            probe_timeout: Login timeout for a single probe, in seconds.

        """
        self.provisioner = provisioner
        self.probe_timeout = probe_timeout

    def check(self, descriptor: ConnectionDescriptor) -> HealthStatus:
        """
        Open and immediately close one connection to the master catalog.

        Returns:
            HEALTHY if the connection opened, NOT_READY if the driver
            reported a failure that is expected while the server boots.

        Raises:
            ConfigurationError: If the failure cannot be fixed by waiting,
                e.g. a missing ODBC driver or malformed connection string.

        """
        try:
            conn = self.provisioner.connect(descriptor, timeout=self.probe_timeout)
        except self.provisioner.driver_error as exc:
            if self.provisioner.is_transient(exc):
                logger.debug(
                    "Database server not ready yet.",
                    extra={"host": descriptor.host, "port": descriptor.port, "error": str(exc)},
                )
                return HealthStatus.NOT_READY
            raise ConfigurationError(
                f"Health probe against {descriptor.host}:{descriptor.port} failed "
                f"with a non-transient error: {exc}"
            ) from exc
        try:
            conn.close()
        except self.provisioner.driver_error as exc:
            logger.debug(
                "Failed to close probe connection.",
                extra={"host": descriptor.host, "port": descriptor.port, "error": str(exc)},
            )
        return HealthStatus.HEALTHY

    def is_healthy(self, descriptor: ConnectionDescriptor) -> bool:
        return self.check(descriptor) is HealthStatus.HEALTHY
