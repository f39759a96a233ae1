from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, DockerException, NotFound

from ephemeral_db.containers import DockerContainerManager
from ephemeral_db.errors import ContainerRuntimeError
from ephemeral_db.models import ContainerHandle


@pytest.fixture
def docker_client():
    """Fixture to create a mocked Docker client."""
    return MagicMock()


def _start(manager):
    return manager.start(
        "sql-stream-store-tests-mssql",
        "mcr.microsoft.com/mssql/server",
        "2019-latest",
        {"ACCEPT_EULA": "Y"},
        {1433: 11433},
    )


def test_start_creates_missing_container(docker_client):
    """An absent container is created with the requested image, env and ports."""
    docker_client.containers.get.side_effect = NotFound("missing")
    docker_client.containers.run.return_value = MagicMock(id="abc123")

    handle = _start(DockerContainerManager(docker_client))

    docker_client.containers.run.assert_called_once_with(
        "mcr.microsoft.com/mssql/server:2019-latest",
        name="sql-stream-store-tests-mssql",
        environment={"ACCEPT_EULA": "Y"},
        ports={"1433/tcp": 11433},
        detach=True,
    )
    assert handle == ContainerHandle(
        container_id="abc123",
        name="sql-stream-store-tests-mssql",
        image="mcr.microsoft.com/mssql/server:2019-latest",
        created=True,
    )


def test_start_reuses_running_container(docker_client):
    """A running container is reused, never recreated or restarted."""
    container = MagicMock(id="abc123", status="running")
    docker_client.containers.get.return_value = container

    handle = _start(DockerContainerManager(docker_client))

    docker_client.containers.run.assert_not_called()
    container.start.assert_not_called()
    assert handle.created is False


def test_start_restarts_stopped_container(docker_client):
    container = MagicMock(id="abc123", status="exited")
    docker_client.containers.get.return_value = container

    handle = _start(DockerContainerManager(docker_client))

    container.start.assert_called_once()
    docker_client.containers.run.assert_not_called()
    assert handle.created is False


def test_start_tolerates_concurrent_creator(docker_client):
    """A 409 conflict means another process won the race; use its container."""
    winner = MagicMock(id="abc123")
    docker_client.containers.get.side_effect = [NotFound("missing"), winner]
    docker_client.containers.run.side_effect = APIError(
        "Conflict", response=MagicMock(status_code=409)
    )

    handle = _start(DockerContainerManager(docker_client))

    assert handle.container_id == "abc123"


def test_start_wraps_docker_errors(docker_client):
    docker_client.containers.get.side_effect = DockerException("daemon down")
    with pytest.raises(ContainerRuntimeError, match="daemon down"):
        _start(DockerContainerManager(docker_client))


def test_client_created_lazily(mocker):
    """No Docker connection is made until the manager is used."""
    from_env = mocker.patch("ephemeral_db.containers.docker.from_env")
    manager = DockerContainerManager()
    from_env.assert_not_called()

    assert manager.client is from_env.return_value
    from_env.assert_called_once()


def test_client_unavailable(mocker):
    mocker.patch(
        "ephemeral_db.containers.docker.from_env", side_effect=DockerException("no socket")
    )
    with pytest.raises(ContainerRuntimeError, match="Docker is not available"):
        DockerContainerManager().client


def test_stop(docker_client):
    container = MagicMock()
    docker_client.containers.get.return_value = container

    DockerContainerManager(docker_client).stop(ContainerHandle(container_id="abc123", name="db"))

    docker_client.containers.get.assert_called_once_with("abc123")
    container.stop.assert_called_once()


def test_stop_missing_container_is_noop(docker_client):
    docker_client.containers.get.side_effect = NotFound("missing")
    DockerContainerManager(docker_client).stop(ContainerHandle(container_id="abc123", name="db"))
