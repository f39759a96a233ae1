"""Disposable database fixture for integration tests."""
import datetime
import logging
import threading
import uuid
from typing import Any, Callable, List, Optional

from .config import Settings
from .connection import build_connection_string
from .containers import DockerContainerManager
from .db.base import DatabaseProvisioner
from .db.factory import get_provisioner
from .errors import FixtureStateError
from .health import HealthPoller
from .models import ConnectionDescriptor, FixtureState, StoreSettings
from .orchestrator import ContainerOrchestrator

logger = logging.getLogger(__name__)

# Builds the store under test; the returned object must expose apply_schema().
StoreFactory = Callable[[StoreSettings], Any]


def generate_database_name(prefix: str = "sss-v3-") -> str:
    """Return `prefix` followed by a random 128-bit identifier in hex."""
    return f"{prefix}{uuid.uuid4().hex}"


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class DatabaseFixture:
    """
    Owns one disposable database inside a shared server container.

    The fixture is single-use: `acquire()` provisions the database and
    returns a store bound to it, `dispose()` drops it again. Construction
    has no side effects.

    Usage:
        with DatabaseFixture("dbo", store_factory=MyStore) as fixture:
            store = fixture.acquire()
            ...
    """

    def __init__(
        self,
        schema: str,
        store_factory: StoreFactory,
        *,
        settings: Optional[Settings] = None,
        database_name_override: Optional[str] = None,
        delete_database_on_dispose: bool = True,
        disable_deletion_tracking: bool = False,
        provisioner: Optional[DatabaseProvisioner] = None,
        orchestrator: Optional[ContainerOrchestrator] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.schema = schema
        self.store_factory = store_factory
        self.settings = settings or Settings()
        self.database_name_override = database_name_override
        self.delete_database_on_dispose = delete_database_on_dispose
        self.disable_deletion_tracking = disable_deletion_tracking
        self.cancel_event = cancel_event or threading.Event()
        self.get_utc_now: Callable[[], datetime.datetime] = _utc_now

        self.provisioner = provisioner or get_provisioner(
            self.settings.engine, **self.settings.engine_options()
        )
        self.orchestrator = orchestrator or ContainerOrchestrator(
            DockerContainerManager(),
            HealthPoller(self.provisioner, probe_timeout=self.settings.probe_timeout),
            poll_interval=self.settings.poll_interval,
        )

        self.database_name = database_name_override or generate_database_name(
            self.settings.database_prefix
        )
        self.master_descriptor = self.settings.master_descriptor(self.provisioner)
        self.descriptor: ConnectionDescriptor = self.master_descriptor.with_catalog(
            self.database_name
        )
        self.connection_string = build_connection_string(self.descriptor)

        self.state = FixtureState.CREATED
        self.dispose_error: Optional[BaseException] = None
        self._creation_attempted = False
        self._database_created = False
        self._stores: List[Any] = []

    @property
    def owns_database(self) -> bool:
        """Whether this fixture may drop its database on disposal."""
        return self.database_name_override is None and self.delete_database_on_dispose

    def __enter__(self) -> "DatabaseFixture":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _require(self, *states: FixtureState) -> None:
        if self.state not in states:
            raise FixtureStateError(
                f"Operation not allowed in state {self.state.value}; "
                f"expected one of {[s.value for s in states]}."
            )

    def _log_extra(self) -> dict:
        return {"database_name": self.database_name, "state": self.state.value}

    def _create_database(self) -> None:
        if self.database_name_override is not None:
            logger.info(
                "Using externally owned database; skipping creation.", extra=self._log_extra()
            )
            return
        self.orchestrator.ensure_running(
            self.settings.container_spec(self.provisioner),
            self.master_descriptor,
            timeout=self.settings.startup_timeout,
            cancel_event=self.cancel_event,
        )
        # Creation runs several statements; a failure after CREATE DATABASE
        # still leaves a database behind.
        self._creation_attempted = True
        self.provisioner.create_database(self.master_descriptor, self.database_name)
        self._database_created = True

    def _build_store(self, schema: str, apply_schema: bool) -> Any:
        store_settings = StoreSettings(
            connection_string=self.connection_string,
            descriptor=self.descriptor,
            schema_name=schema,
            # Late-bound so tests can swap the fixture clock after acquire().
            get_utc_now=lambda: self.get_utc_now(),
            disable_deletion_tracking=self.disable_deletion_tracking,
        )
        store = self.store_factory(store_settings)
        self._stores.append(store)
        if apply_schema:
            store.apply_schema()
        return store

    def _provision(self, apply_schema: bool) -> Any:
        self._require(FixtureState.CREATED)
        self.state = FixtureState.PROVISIONING
        logger.info("Provisioning database.", extra=self._log_extra())
        try:
            self._create_database()
            store = self._build_store(self.schema, apply_schema=apply_schema)
        except BaseException:
            self.state = FixtureState.FAILED
            logger.exception("Provisioning failed.", extra=self._log_extra())
            raise
        self.state = FixtureState.READY
        logger.info("Database ready.", extra=self._log_extra())
        return store

    def acquire(self) -> Any:
        """
        Provision the database and return a store with its schema applied.

        Raises:
            FixtureStateError: If the fixture was already acquired, failed or
                was disposed.
            StartupTimeoutError, StartupCancelledError, DbError: Propagated
                from the provisioning steps; the fixture is left FAILED.

        """
        return self._provision(apply_schema=True)

    def get_uninitialized_store(self) -> Any:
        """Provision the database and return a store without applying its schema."""
        return self._provision(apply_schema=False)

    def get_store(self, schema: str) -> Any:
        """Return another store on the same database, using `schema`."""
        self._require(FixtureState.READY)
        return self._build_store(schema, apply_schema=True)

    def connect(self) -> Any:
        """Open a connection to the fixture database, closed again on disposal."""
        self._require(FixtureState.READY)
        return self.provisioner.connect(self.descriptor, track=True)

    def _release_stores(self) -> None:
        stores, self._stores = self._stores, []
        for store in stores:
            close = getattr(store, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as exc:
                logger.warning(
                    "Failed to close store.", extra={**self._log_extra(), "error": str(exc)}
                )

    def dispose(self) -> None:
        """
        Drop the database if this fixture owns it.

        Safe to call at any point and any number of times. Errors are
        logged and kept on `dispose_error` instead of being raised.
        """
        if self.state is FixtureState.DISPOSED:
            return

        self._release_stores()

        if not self.owns_database or not self._creation_attempted:
            logger.info("Nothing to drop on dispose.", extra=self._log_extra())
            self.state = FixtureState.DISPOSED
            return

        try:
            if self._database_created or self.provisioner.database_exists(
                self.master_descriptor, self.database_name
            ):
                self.provisioner.drop_database(self.master_descriptor, self.database_name)
            else:
                logger.info("Database was never created; nothing to drop.", extra=self._log_extra())
        except Exception as exc:
            self.dispose_error = exc
            logger.exception("Failed to drop database.", extra=self._log_extra())
        finally:
            self.state = FixtureState.DISPOSED
