"""Factory for creating database provisioners."""
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import DatabaseProvisioner

ENGINE_GROUP = "ephemeral_db.engines"


def get_provisioner(engine_name: str, **options: Any) -> "DatabaseProvisioner":
    """
    Dynamically discover and load a DatabaseProvisioner plugin.

    Args:
        engine_name: The name of the engine to load (e.g., 'sqlserver').
        **options: Keyword arguments for the provisioner's constructor.

    Returns:
        An initialized instance of the requested DatabaseProvisioner.

    Raises:
        ValueError: If the requested engine is not found.

    """
    discovered_plugins = entry_points(group=ENGINE_GROUP)

    try:
        plugin = discovered_plugins[engine_name]
    except KeyError:
        raise ValueError(
            f"Database engine '{engine_name}' not found. "
            f"Available engines: {[ep.name for ep in discovered_plugins]}"
        ) from None

    provisioner_class = plugin.load()
    return provisioner_class(**options)
