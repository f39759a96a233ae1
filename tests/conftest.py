from unittest.mock import MagicMock

import pytest
from testcontainers.postgres import PostgresContainer

from ephemeral_db.config import Settings
from ephemeral_db.db.base import DatabaseProvisioner
from ephemeral_db.orchestrator import ContainerOrchestrator


class FakeStore:
    """Stands in for the store under test."""

    def __init__(self, settings):
        self.settings = settings
        self.schema_applied = False
        self.closed = False

    def apply_schema(self):
        self.schema_applied = True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_store_factory():
    """A store factory that records every store it builds."""
    created = []

    def factory(settings):
        store = FakeStore(settings)
        created.append(store)
        return store

    factory.created = created
    return factory


@pytest.fixture
def sqlserver_settings() -> Settings:
    """Settings for the default engine that ignore the environment."""
    return Settings(_env_file=None, engine="sqlserver", host_port=11433)


@pytest.fixture
def mock_provisioner():
    """A provisioner double with SQL Server defaults."""
    provisioner = MagicMock(spec=DatabaseProvisioner)
    provisioner.name = "sqlserver"
    provisioner.admin_user = "sa"
    provisioner.default_image = "mcr.microsoft.com/mssql/server"
    provisioner.default_tag = "2019-latest"
    provisioner.default_container_name = "sql-stream-store-tests-mssql"
    provisioner.default_host_port = 11433
    provisioner.container_port = 1433
    provisioner.container_environment.return_value = {"ACCEPT_EULA": "Y"}
    return provisioner


@pytest.fixture
def mock_orchestrator():
    return MagicMock(spec=ContainerOrchestrator)


# This fixture is function-scoped, ensuring every test gets a fresh server.
@pytest.fixture(scope="function")
def postgres_container() -> PostgresContainer:
    """
    Starts a PostgreSQL container for a single test function.
    """
    try:
        with PostgresContainer("postgres:16-alpine") as container:
            yield container
    except Exception as e:
        pytest.skip(f"Skipping integration tests: Docker not available. Error: {e}")


@pytest.fixture(scope="function")
def postgres_settings(postgres_container: PostgresContainer) -> Settings:
    """Settings pointing at the testcontainers-managed PostgreSQL server."""
    return Settings(
        _env_file=None,
        engine="postgresql",
        container_name=postgres_container.get_wrapped_container().name,
        host=postgres_container.get_container_host_ip(),
        host_port=int(postgres_container.get_exposed_port(5432)),
        admin_user=postgres_container.username,
        admin_password=postgres_container.password,
        startup_timeout=60.0,
        poll_interval=0.2,
    )
