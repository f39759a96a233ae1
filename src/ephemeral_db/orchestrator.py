"""Container orchestration: start the server and wait until it is healthy."""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from .containers import ContainerManager
from .errors import StartupCancelledError, StartupTimeoutError
from .health import HealthPoller
from .models import ConnectionDescriptor, ContainerHandle, ContainerSpec

logger = logging.getLogger(__name__)


class ContainerOrchestrator:
    """Ensures a named database container is running and accepting connections."""

    def __init__(
        self,
        container_manager: ContainerManager,
        health_poller: HealthPoller,
        poll_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.container_manager = container_manager
        self.health_poller = health_poller
        self.poll_interval = poll_interval
        self.clock = clock

    def ensure_running(
        self,
        spec: ContainerSpec,
        descriptor: ConnectionDescriptor,
        timeout: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> ContainerHandle:
        """
        Start (or reuse) the container in `spec` and wait for it to be healthy.

        Args:
            spec: The container to run.
            descriptor: Master-catalog descriptor used for health probes.
            timeout: Overall budget, in seconds, covering the container
                start (including any image pull) and the health polling.
            cancel_event: Set it to abort the start or the wait.

        Returns:
            The handle reported by the container manager.

        Raises:
            StartupTimeoutError: If the budget runs out. Not retried.
            StartupCancelledError: If `cancel_event` is set before the container
                is healthy.

        """
        cancel_event = cancel_event or threading.Event()
        log_extra = {"container_name": spec.container_name, "image": spec.image_ref}

        started = self.clock()
        handle = self._start_container(spec, timeout, cancel_event, started)

        attempts = 0
        while True:
            elapsed = self.clock() - started
            if cancel_event.is_set():
                raise StartupCancelledError(spec.container_name, elapsed)

            attempts += 1
            if self.health_poller.is_healthy(descriptor):
                logger.info(
                    "Container is healthy.",
                    extra={**log_extra, "attempts": attempts, "elapsed": round(elapsed, 3)},
                )
                return handle

            elapsed = self.clock() - started
            if elapsed >= timeout:
                logger.error(
                    "Container did not become healthy in time.",
                    extra={**log_extra, "attempts": attempts, "elapsed": round(elapsed, 3)},
                )
                raise StartupTimeoutError(spec.container_name, elapsed, timeout)

            if cancel_event.wait(min(self.poll_interval, timeout - elapsed)):
                raise StartupCancelledError(spec.container_name, self.clock() - started)

    def _start_container(
        self,
        spec: ContainerSpec,
        timeout: float,
        cancel_event: threading.Event,
        started: float,
    ) -> ContainerHandle:
        # Image pulls can run for minutes; wait on them in slices so the
        # budget and the cancel event still apply.
        if cancel_event.is_set():
            raise StartupCancelledError(spec.container_name, 0.0)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="container-start")
        future = executor.submit(
            self.container_manager.start,
            spec.container_name,
            spec.image,
            spec.tag,
            dict(spec.environment),
            spec.port_map,
        )
        executor.shutdown(wait=False)
        while True:
            elapsed = self.clock() - started
            if cancel_event.is_set():
                raise StartupCancelledError(spec.container_name, elapsed)
            if elapsed >= timeout:
                logger.error(
                    "Container did not start in time.",
                    extra={"container_name": spec.container_name, "elapsed": round(elapsed, 3)},
                )
                raise StartupTimeoutError(spec.container_name, elapsed, timeout)
            try:
                return future.result(timeout=min(self.poll_interval, timeout - elapsed))
            except FutureTimeoutError:
                continue

    def stop(self, handle: ContainerHandle) -> None:
        self.container_manager.stop(handle)
