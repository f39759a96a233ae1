"""Connection string builders for the supported database engines."""
from typing import Callable, Dict

from psycopg.conninfo import make_conninfo

from .errors import ConfigurationError
from .models import ConnectionDescriptor, ContainerSpec, Credentials

MASTER_CATALOGS = {
    "sqlserver": "master",
    "postgresql": "postgres",
}


def _quote_odbc_value(value: str) -> str:
    """Brace-quote an ODBC attribute value when it needs it."""
    if any(ch in value for ch in ";{}") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def _validate(descriptor: ConnectionDescriptor) -> None:
    if not descriptor.host or not descriptor.host.strip():
        raise ConfigurationError("Connection descriptor has an empty host.")
    if descriptor.port <= 0 or descriptor.port > 65535:
        raise ConfigurationError(
            f"Connection descriptor has an invalid port: {descriptor.port}."
        )


def _sqlserver_connection_string(descriptor: ConnectionDescriptor) -> str:
    parts = [
        ("DRIVER", "{" + descriptor.odbc_driver + "}"),
        ("SERVER", f"{descriptor.host},{descriptor.port}"),
        ("UID", _quote_odbc_value(descriptor.username)),
        ("PWD", _quote_odbc_value(descriptor.password)),
    ]
    if descriptor.catalog_name:
        parts.append(("DATABASE", _quote_odbc_value(descriptor.catalog_name)))
    if descriptor.multiple_active_result_sets:
        parts.append(("MARS_Connection", "yes"))
    if descriptor.trust_server_certificate:
        parts.append(("TrustServerCertificate", "yes"))
    return ";".join(f"{key}={value}" for key, value in parts)


def _postgresql_connection_string(descriptor: ConnectionDescriptor) -> str:
    params = {
        "host": descriptor.host,
        "port": descriptor.port,
        "user": descriptor.username,
        "password": descriptor.password,
    }
    if descriptor.catalog_name:
        params["dbname"] = descriptor.catalog_name
    return make_conninfo(**params)


_BUILDERS: Dict[str, Callable[[ConnectionDescriptor], str]] = {
    "sqlserver": _sqlserver_connection_string,
    "postgresql": _postgresql_connection_string,
}


def build_connection_string(descriptor: ConnectionDescriptor) -> str:
    """
    Render a descriptor as a driver connection string.

    SQL Server descriptors become ODBC connection strings (for pyodbc),
    PostgreSQL descriptors become libpq conninfo strings (for psycopg).

    Raises:
        ConfigurationError: If the host or port is malformed or the engine
            is unknown.

    """
    _validate(descriptor)
    try:
        builder = _BUILDERS[descriptor.engine]
    except KeyError:
        raise ConfigurationError(
            f"Unknown database engine '{descriptor.engine}'. "
            f"Known engines: {sorted(_BUILDERS)}"
        ) from None
    return builder(descriptor)


def master_descriptor(
    spec: ContainerSpec, credentials: Credentials, engine: str = "sqlserver"
) -> ConnectionDescriptor:
    """Build the administrative descriptor for the container described by `spec`."""
    if engine not in MASTER_CATALOGS:
        raise ConfigurationError(f"Unknown database engine '{engine}'.")
    return ConnectionDescriptor(
        engine=engine,
        host=spec.host,
        port=spec.host_port,
        username=credentials.username,
        password=credentials.password,
        catalog_name=MASTER_CATALOGS[engine],
    )


def build_master_connection_string(
    spec: ContainerSpec, credentials: Credentials, engine: str = "sqlserver"
) -> str:
    """Connection string for the master catalog of the container in `spec`."""
    return build_connection_string(master_descriptor(spec, credentials, engine))
