"""PostgreSQL database provisioner."""
from typing import Dict, List, Optional

import psycopg
from psycopg import sql

from .base import DatabaseProvisioner, Statement


class PostgresProvisioner(DatabaseProvisioner):
    """PostgreSQL provisioner backed by psycopg."""

    name = "postgresql"
    driver_error = psycopg.Error

    default_image = "postgres"
    default_tag = "16-alpine"
    default_container_name = "ephemeral-db-tests-postgres"
    default_host_port = 15432
    container_port = 5432
    admin_user = "postgres"

    def container_environment(self, password: str) -> Dict[str, str]:
        return {"POSTGRES_PASSWORD": password}

    def _open(self, connection_string: str, timeout: Optional[int]):
        if timeout is None:
            return psycopg.connect(connection_string, autocommit=True)
        return psycopg.connect(connection_string, autocommit=True, connect_timeout=timeout)

    def is_transient(self, exc: BaseException) -> bool:
        # Refused connections, timeouts and "the database system is starting
        # up" all surface as OperationalError.
        return isinstance(exc, psycopg.OperationalError)

    def _create_statements(self, name: str) -> List[Statement]:
        return [(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)), ())]

    def _drop_statements(self, name: str) -> List[Statement]:
        ident = sql.Identifier(name)
        return [
            (sql.SQL("ALTER DATABASE {} ALLOW_CONNECTIONS false").format(ident), ()),
            (
                sql.SQL(
                    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                    "WHERE datname = %s AND pid <> pg_backend_pid()"
                ),
                (name,),
            ),
            (sql.SQL("DROP DATABASE {}").format(ident), ()),
        ]

    def _exists_statement(self, name: str) -> Statement:
        return ("SELECT 1 FROM pg_database WHERE datname = %s", (name,))
