from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg import sql

from ephemeral_db.db.postgresql import PostgresProvisioner
from ephemeral_db.errors import DbError
from ephemeral_db.models import ConnectionDescriptor

MASTER = ConnectionDescriptor(
    engine="postgresql",
    host="localhost",
    port=15432,
    username="postgres",
    password="secret",
    catalog_name="postgres",
)


@pytest.fixture
def mock_conn(mocker):
    """Fixture to mock psycopg.connect and return the connection double."""
    conn = MagicMock()
    mocker.patch("ephemeral_db.db.postgresql.psycopg.connect", return_value=conn)
    return conn


def _executed(conn):
    cursor = conn.cursor.return_value.__enter__.return_value
    return [c.args for c in cursor.execute.call_args_list]


def test_create_database(mock_conn):
    """CREATE DATABASE quotes the name as an identifier."""
    PostgresProvisioner().create_database(MASTER, "sss-v3-abc")

    assert _executed(mock_conn) == [
        (sql.SQL("CREATE DATABASE {}").format(sql.Identifier("sss-v3-abc")),),
    ]
    mock_conn.close.assert_called_once()


def test_drop_database_blocks_kicks_and_drops(mock_conn):
    """New connections are refused, other sessions terminated, then the drop runs."""
    PostgresProvisioner().drop_database(MASTER, "sss-v3-abc")

    executed = _executed(mock_conn)
    assert len(executed) == 3
    assert executed[0] == (
        sql.SQL("ALTER DATABASE {} ALLOW_CONNECTIONS false").format(sql.Identifier("sss-v3-abc")),
    )
    assert executed[1][1] == ("sss-v3-abc",)
    assert executed[2] == (sql.SQL("DROP DATABASE {}").format(sql.Identifier("sss-v3-abc")),)


def test_drop_database_failure_is_db_error(mocker):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value.execute.side_effect = psycopg.errors.InvalidCatalogName(
        'database "sss-v3-abc" does not exist'
    )
    mocker.patch("ephemeral_db.db.postgresql.psycopg.connect", return_value=conn)

    with pytest.raises(DbError, match="Failed to drop database 'sss-v3-abc'"):
        PostgresProvisioner().drop_database(MASTER, "sss-v3-abc")


def test_clear_pools_only_closes_matching_catalog(mocker):
    """Only connections to the dropped catalog are closed."""
    first, second = MagicMock(), MagicMock()
    mocker.patch("ephemeral_db.db.postgresql.psycopg.connect", side_effect=[first, second])
    provisioner = PostgresProvisioner()
    provisioner.connect(MASTER.with_catalog("one"), track=True)
    provisioner.connect(MASTER.with_catalog("two"), track=True)

    assert provisioner.clear_pools("one") == 1

    first.close.assert_called_once()
    second.close.assert_not_called()
    assert provisioner.clear_pools("one") == 0


def test_is_transient():
    provisioner = PostgresProvisioner()
    assert provisioner.is_transient(psycopg.OperationalError("the database system is starting up"))
    assert not provisioner.is_transient(psycopg.ProgrammingError("invalid dsn"))


def test_container_defaults():
    provisioner = PostgresProvisioner()
    assert provisioner.container_environment("secret") == {"POSTGRES_PASSWORD": "secret"}
    assert provisioner.master_catalog == "postgres"
    assert provisioner.container_port == 5432
