"""SQL Server database provisioner."""
from typing import Dict, List, Optional

import pyodbc

from .base import DatabaseProvisioner, Statement

# SQLSTATE classes that mean the server is still booting.
TRANSIENT_SQLSTATE_PREFIXES = ("08", "HYT", "28000")


def quote_name(name: str) -> str:
    """Quote an identifier with brackets, doubling any closing bracket."""
    return "[" + name.replace("]", "]]") + "]"


class SqlServerProvisioner(DatabaseProvisioner):
    """SQL Server provisioner backed by pyodbc."""

    name = "sqlserver"
    driver_error = pyodbc.Error

    default_image = "mcr.microsoft.com/mssql/server"
    default_tag = "2019-latest"
    default_container_name = "sql-stream-store-tests-mssql"
    default_host_port = 11433
    container_port = 1433
    admin_user = "sa"

    def __init__(self, compatibility_level: int = 110):
        """
        Initialize the provisioner.

        Args:
            compatibility_level: The COMPATIBILITY_LEVEL new databases are
                pinned to.

        """
        super().__init__()
        self.compatibility_level = compatibility_level

    def container_environment(self, password: str) -> Dict[str, str]:
        return {
            "ACCEPT_EULA": "Y",
            "SA_PASSWORD": password,
            "MSSQL_SA_PASSWORD": password,
        }

    def _open(self, connection_string: str, timeout: Optional[int]):
        if timeout is None:
            return pyodbc.connect(connection_string, autocommit=True)
        return pyodbc.connect(connection_string, autocommit=True, timeout=timeout)

    def is_transient(self, exc: BaseException) -> bool:
        if isinstance(exc, pyodbc.OperationalError):
            return True
        if not isinstance(exc, pyodbc.Error) or not exc.args:
            return False
        sqlstate = str(exc.args[0])
        return sqlstate.startswith(TRANSIENT_SQLSTATE_PREFIXES)

    def _create_statements(self, name: str) -> List[Statement]:
        # Single-user while the compatibility level changes keeps the
        # server's own background connections out.
        quoted = quote_name(name)
        return [
            (f"CREATE DATABASE {quoted}", ()),
            (f"ALTER DATABASE {quoted} SET SINGLE_USER", ()),
            (f"ALTER DATABASE {quoted} SET COMPATIBILITY_LEVEL={int(self.compatibility_level)}", ()),
            (f"ALTER DATABASE {quoted} SET MULTI_USER", ()),
        ]

    def _drop_statements(self, name: str) -> List[Statement]:
        quoted = quote_name(name)
        return [
            (f"ALTER DATABASE {quoted} SET SINGLE_USER WITH ROLLBACK IMMEDIATE", ()),
            (f"DROP DATABASE {quoted}", ()),
        ]

    def _exists_statement(self, name: str) -> Statement:
        return ("SELECT 1 FROM sys.databases WHERE name = ?", (name,))
