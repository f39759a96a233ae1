import datetime
import enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FixtureState(str, enum.Enum):
    """Lifecycle states of a DatabaseFixture."""

    CREATED = "CREATED"
    PROVISIONING = "PROVISIONING"
    READY = "READY"
    FAILED = "FAILED"
    DISPOSED = "DISPOSED"


class HealthStatus(str, enum.Enum):
    """Outcome of a single health probe."""

    HEALTHY = "HEALTHY"
    NOT_READY = "NOT_READY"


class Credentials(BaseModel):
    """Administrative login for the database server."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str


class ConnectionDescriptor(BaseModel):
    """Everything needed to build a connection string for one catalog."""

    model_config = ConfigDict(frozen=True)

    engine: str = "sqlserver"
    host: str
    port: int
    username: str
    password: str
    catalog_name: str = ""
    multiple_active_result_sets: bool = True
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    trust_server_certificate: bool = True

    @property
    def credentials(self) -> Credentials:
        return Credentials(username=self.username, password=self.password)

    def with_catalog(self, catalog_name: str) -> "ConnectionDescriptor":
        """Return a copy of this descriptor bound to another catalog."""
        return self.model_copy(update={"catalog_name": catalog_name})


class ContainerSpec(BaseModel):
    """Which server image to run and how to expose it."""

    model_config = ConfigDict(frozen=True)

    image: str
    tag: str
    container_name: str
    host: str = "localhost"
    host_port: int
    container_port: int
    environment: Dict[str, str] = Field(default_factory=dict)

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.tag}"

    @property
    def port_map(self) -> Dict[int, int]:
        return {self.container_port: self.host_port}


class ContainerHandle(BaseModel):
    """A running container as reported by the container manager."""

    model_config = ConfigDict(frozen=True)

    container_id: str
    name: str
    image: Optional[str] = None
    created: bool = False


class StoreSettings(BaseModel):
    """Configuration handed to the store under test."""

    connection_string: str
    descriptor: ConnectionDescriptor
    schema_name: str
    get_utc_now: Callable[[], datetime.datetime]
    disable_deletion_tracking: bool = False
