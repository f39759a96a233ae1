"""Container runtime managers."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import docker
from docker.errors import APIError, DockerException, NotFound

from .errors import ContainerRuntimeError
from .models import ContainerHandle

logger = logging.getLogger(__name__)


class ContainerManager(ABC):
    """Abstract Base Class for container runtimes."""

    @abstractmethod
    def start(
        self,
        name: str,
        image: str,
        tag: str,
        environment: Dict[str, str],
        port_map: Dict[int, int],
    ) -> ContainerHandle:
        """
        Make sure a container called `name` is running.

        Starting a container that is already running is a no-op success;
        an existing container is never recreated.
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self, handle: ContainerHandle) -> None:
        """Stop the container behind `handle`."""
        raise NotImplementedError


class DockerContainerManager(ContainerManager):
    """Container manager backed by the Docker Engine API."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        """The Docker client, created from the environment on first use."""
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as exc:
                raise ContainerRuntimeError(f"Docker is not available: {exc}") from exc
        return self._client

    def _find(self, name: str):
        try:
            return self.client.containers.get(name)
        except NotFound:
            return None

    def _run(self, name, image_ref, environment, port_map):
        ports = {f"{container_port}/tcp": host_port for container_port, host_port in port_map.items()}
        try:
            return self.client.containers.run(
                image_ref,
                name=name,
                environment=environment,
                ports=ports,
                detach=True,
            )
        except APIError as exc:
            # Another process created the same container first.
            if exc.status_code == 409:
                existing = self._find(name)
                if existing is not None:
                    return existing
            raise

    def start(
        self,
        name: str,
        image: str,
        tag: str,
        environment: Dict[str, str],
        port_map: Dict[int, int],
    ) -> ContainerHandle:
        image_ref = f"{image}:{tag}"
        log_extra = {"container_name": name, "image": image_ref}
        created = False
        try:
            container = self._find(name)
            if container is None:
                logger.info("Starting new container.", extra=log_extra)
                container = self._run(name, image_ref, environment, port_map)
                created = True
            else:
                container.reload()
                if container.status != "running":
                    logger.info(
                        "Restarting existing container.",
                        extra={**log_extra, "status": container.status},
                    )
                    container.start()
                else:
                    logger.info("Reusing running container.", extra=log_extra)
        except DockerException as exc:
            raise ContainerRuntimeError(f"Failed to start container '{name}': {exc}") from exc

        return ContainerHandle(
            container_id=container.id,
            name=name,
            image=image_ref,
            created=created,
        )

    def stop(self, handle: ContainerHandle) -> None:
        try:
            container = self.client.containers.get(handle.container_id)
        except NotFound:
            logger.warning("Container already gone.", extra={"container_name": handle.name})
            return
        except DockerException as exc:
            raise ContainerRuntimeError(f"Failed to look up container '{handle.name}': {exc}") from exc

        logger.info("Stopping container.", extra={"container_name": handle.name})
        try:
            container.stop()
        except DockerException as exc:
            raise ContainerRuntimeError(f"Failed to stop container '{handle.name}': {exc}") from exc
