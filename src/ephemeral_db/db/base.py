"""Abstract base class for database provisioners."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..connection import MASTER_CATALOGS, build_connection_string
from ..errors import DbError
from ..models import ConnectionDescriptor

logger = logging.getLogger(__name__)

# A statement is a query plus its (possibly empty) parameters.
Statement = Tuple[Any, Sequence[Any]]


class DatabaseProvisioner(ABC):
    """
    Abstract Base Class for database provisioners.

    A provisioner knows how to talk to one database engine: how to open an
    administrative connection, which DDL creates and drops a catalog, and
    which driver errors mean "the server is not up yet". It also remembers
    the connections it handed out so they can be closed before a drop.
    """

    name: str = ""
    driver_error: type = Exception

    default_image: str = ""
    default_tag: str = ""
    default_container_name: str = ""
    default_host_port: int = 0
    container_port: int = 0
    admin_user: str = ""

    def __init__(self) -> None:
        self._tracked: Dict[str, List[Any]] = {}

    @property
    def master_catalog(self) -> str:
        return MASTER_CATALOGS[self.name]

    @abstractmethod
    def container_environment(self, password: str) -> Dict[str, str]:
        """Environment variables the server image needs to boot."""
        raise NotImplementedError

    @abstractmethod
    def _open(self, connection_string: str, timeout: Optional[int]) -> Any:
        """Open an autocommit driver connection."""
        raise NotImplementedError

    @abstractmethod
    def is_transient(self, exc: BaseException) -> bool:
        """
        Classify a driver error raised while connecting.

        Returns:
            True if the error means the server is still starting (refused,
            timed out, login not yet possible), False if retrying cannot
            help.

        """
        raise NotImplementedError

    @abstractmethod
    def _create_statements(self, name: str) -> List[Statement]:
        """DDL that creates catalog `name`, in execution order."""
        raise NotImplementedError

    @abstractmethod
    def _drop_statements(self, name: str) -> List[Statement]:
        """DDL that evicts other sessions from catalog `name` and drops it."""
        raise NotImplementedError

    @abstractmethod
    def _exists_statement(self, name: str) -> Statement:
        """Query returning a row only when catalog `name` exists."""
        raise NotImplementedError

    def connect(
        self,
        descriptor: ConnectionDescriptor,
        timeout: Optional[int] = None,
        track: bool = False,
    ) -> Any:
        """
        Open a connection for `descriptor`.

        Tracked connections are closed by `clear_pools` before the catalog
        they point at is dropped.
        """
        conn = self._open(build_connection_string(descriptor), timeout)
        if track:
            self._tracked.setdefault(descriptor.catalog_name, []).append(conn)
        return conn

    def clear_pools(self, name: str) -> int:
        """Close every tracked connection to catalog `name`."""
        connections = self._tracked.pop(name, [])
        for conn in connections:
            try:
                conn.close()
            except self.driver_error as exc:
                logger.warning(
                    "Failed to close pooled connection.",
                    extra={"database_name": name, "error": str(exc)},
                )
        if connections:
            logger.info(
                "Cleared pooled connections.",
                extra={"database_name": name, "count": len(connections)},
            )
        return len(connections)

    @contextmanager
    def _admin_connection(self, master: ConnectionDescriptor) -> Iterator[Any]:
        """Provide a short-lived connection to the master catalog."""
        conn = self.connect(master)
        try:
            yield conn
        finally:
            conn.close()

    def _execute(
        self, master: ConnectionDescriptor, statements: List[Statement], name: str, action: str
    ) -> None:
        try:
            with self._admin_connection(master) as conn:
                with conn.cursor() as cur:
                    for query, params in statements:
                        if params:
                            cur.execute(query, params)
                        else:
                            cur.execute(query)
        except self.driver_error as exc:
            raise DbError(f"Failed to {action} database '{name}': {exc}", database_name=name) from exc

    def create_database(self, master: ConnectionDescriptor, name: str) -> None:
        """
        Create catalog `name` on the server reached through `master`.

        Raises:
            DbError: If the name already exists or privileges are
                insufficient. Not retried.

        """
        logger.info("Creating database.", extra={"database_name": name, "engine": self.name})
        self._execute(master, self._create_statements(name), name, "create")
        logger.info("Database created.", extra={"database_name": name})

    def drop_database(self, master: ConnectionDescriptor, name: str) -> None:
        """
        Forcibly drop catalog `name`.

        Pooled connections are cleared first, then other sessions are
        evicted, then the catalog is dropped.

        Raises:
            DbError: If the drop fails.

        """
        self.clear_pools(name)
        logger.info("Dropping database.", extra={"database_name": name, "engine": self.name})
        self._execute(master, self._drop_statements(name), name, "drop")
        logger.info("Database dropped.", extra={"database_name": name})

    def database_exists(self, master: ConnectionDescriptor, name: str) -> bool:
        """Check whether catalog `name` exists on the server."""
        query, params = self._exists_statement(name)
        try:
            with self._admin_connection(master) as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    return cur.fetchone() is not None
        except self.driver_error as exc:
            raise DbError(f"Failed to look up database '{name}': {exc}", database_name=name) from exc
