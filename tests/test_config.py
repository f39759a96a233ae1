from ephemeral_db.config import Settings
from ephemeral_db.db.postgresql import PostgresProvisioner


def test_defaults_follow_provisioner(mock_provisioner):
    """Unset engine-specific settings come from the provisioner."""
    settings = Settings(_env_file=None)

    spec = settings.container_spec(mock_provisioner)

    assert spec.image == "mcr.microsoft.com/mssql/server"
    assert spec.container_name == "sql-stream-store-tests-mssql"
    assert spec.port_map == {1433: 11433}
    assert settings.credentials(mock_provisioner).username == "sa"
    assert settings.engine_options() == {"compatibility_level": 110}


def test_environment_overrides(monkeypatch):
    """EDB_* environment variables override the defaults."""
    monkeypatch.setenv("EDB_ENGINE", "postgresql")
    monkeypatch.setenv("EDB_HOST_PORT", "25432")
    monkeypatch.setenv("EDB_TAG", "15")
    monkeypatch.setenv("EDB_STARTUP_TIMEOUT", "30")

    settings = Settings(_env_file=None)
    provisioner = PostgresProvisioner()
    spec = settings.container_spec(provisioner)

    assert settings.engine_options() == {}
    assert settings.startup_timeout == 30.0
    assert spec.image_ref == "postgres:15"
    assert spec.port_map == {5432: 25432}
    assert spec.environment == {"POSTGRES_PASSWORD": "!Passw0rd"}


def test_master_descriptor(mock_provisioner):
    settings = Settings(_env_file=None, host="db.local", multiple_active_result_sets=False)

    descriptor = settings.master_descriptor(mock_provisioner)

    assert descriptor.host == "db.local"
    assert descriptor.port == 11433
    assert descriptor.catalog_name == "master"
    assert descriptor.multiple_active_result_sets is False
