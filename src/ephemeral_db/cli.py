import logging
from typing import Optional

import typer

from .config import Settings
from .containers import DockerContainerManager
from .db.factory import get_provisioner
from .fixture import generate_database_name
from .health import HealthPoller
from .logging_config import configure_logging
from .models import ContainerHandle
from .orchestrator import ContainerOrchestrator

app = typer.Typer()
logger = logging.getLogger(__name__)


@app.callback()
def main():
    """
    Configure logging for all commands.
    """
    configure_logging()


def _build(settings: Settings):
    """Helper to build the provisioner and orchestrator for the configured engine."""
    provisioner = get_provisioner(settings.engine, **settings.engine_options())
    orchestrator = ContainerOrchestrator(
        DockerContainerManager(),
        HealthPoller(provisioner, probe_timeout=settings.probe_timeout),
        poll_interval=settings.poll_interval,
    )
    return provisioner, orchestrator


@app.command()
def start_container() -> None:
    """Starts (or reuses) the database server container and waits until it is healthy."""
    settings = Settings()
    logger.info("Starting database container.", extra={"engine": settings.engine})
    try:
        provisioner, orchestrator = _build(settings)
        handle = orchestrator.ensure_running(
            settings.container_spec(provisioner),
            settings.master_descriptor(provisioner),
            timeout=settings.startup_timeout,
        )
        logger.info(
            "Database container is ready.",
            extra={"container_name": handle.name, "created": handle.created},
        )
    except Exception as e:
        logger.exception("Error starting database container.", exc_info=e)
        raise typer.Exit(code=1)


@app.command()
def stop_container() -> None:
    """Stops the database server container."""
    settings = Settings()
    try:
        provisioner, orchestrator = _build(settings)
        name = settings.container_spec(provisioner).container_name
        orchestrator.stop(ContainerHandle(container_id=name, name=name))
        logger.info("Database container stopped.", extra={"container_name": name})
    except Exception as e:
        logger.exception("Error stopping database container.", exc_info=e)
        raise typer.Exit(code=1)


@app.command()
def create_database(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Database name (random if omitted)."),
) -> None:
    """Creates a database in the running container and prints its connection details."""
    settings = Settings()
    database_name = name or generate_database_name(settings.database_prefix)
    try:
        provisioner, orchestrator = _build(settings)
        master = settings.master_descriptor(provisioner)
        orchestrator.ensure_running(
            settings.container_spec(provisioner), master, timeout=settings.startup_timeout
        )
        provisioner.create_database(master, database_name)
        logger.info("Database created successfully.", extra={"database_name": database_name})
        typer.echo(database_name)
    except Exception as e:
        logger.exception("Error creating database.", exc_info=e)
        raise typer.Exit(code=1)


@app.command()
def drop_database(name: str = typer.Argument(..., help="Database to drop.")) -> None:
    """Forcibly drops a database, disconnecting any open sessions first."""
    settings = Settings()
    try:
        provisioner, _ = _build(settings)
        provisioner.drop_database(settings.master_descriptor(provisioner), name)
        logger.info("Database dropped successfully.", extra={"database_name": name})
    except Exception as e:
        logger.exception("Error dropping database.", exc_info=e)
        raise typer.Exit(code=1)


@app.command()
def database_status(name: str = typer.Argument(..., help="Database to look up.")) -> None:
    """Prints "exists" or "missing" for a database; exits with code 1 when missing."""
    settings = Settings()
    try:
        provisioner, _ = _build(settings)
        exists = provisioner.database_exists(settings.master_descriptor(provisioner), name)
    except Exception as e:
        logger.exception("Error checking database status.", exc_info=e)
        raise typer.Exit(code=1)

    if exists:
        logger.info("Database exists.", extra={"database_name": name})
        typer.echo("exists")
    else:
        logger.warning("Database not found.", extra={"database_name": name})
        typer.echo("missing")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
