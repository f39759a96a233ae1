"""
Application settings management.

This module defines the configuration settings for ephemeral databases,
leveraging Pydantic's `BaseSettings` for environment variable loading.
Engine-specific values left unset fall back to the provisioner's defaults.
"""
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .connection import master_descriptor as build_master_descriptor
from .models import ConnectionDescriptor, ContainerSpec, Credentials

if TYPE_CHECKING:
    from .db.base import DatabaseProvisioner


class Settings(BaseSettings):
    """Application settings."""

    # Settings are loaded from a .env file and the environment, prefix 'EDB_'.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", env_prefix="EDB_"
    )

    engine: str = "sqlserver"
    container_name: Optional[str] = None
    image: Optional[str] = None
    tag: Optional[str] = None
    host: str = "localhost"
    host_port: Optional[int] = None
    admin_user: Optional[str] = None
    admin_password: str = "!Passw0rd"
    database_prefix: str = "sss-v3-"
    startup_timeout: float = 180.0  # seconds
    poll_interval: float = 0.5
    probe_timeout: int = 5
    compatibility_level: int = 110
    multiple_active_result_sets: bool = True
    odbc_driver: str = "ODBC Driver 18 for SQL Server"

    def engine_options(self) -> Dict[str, Any]:
        """Constructor options for the configured engine's provisioner."""
        if self.engine == "sqlserver":
            return {"compatibility_level": self.compatibility_level}
        return {}

    def credentials(self, provisioner: "DatabaseProvisioner") -> Credentials:
        return Credentials(
            username=self.admin_user or provisioner.admin_user,
            password=self.admin_password,
        )

    def container_spec(self, provisioner: "DatabaseProvisioner") -> ContainerSpec:
        return ContainerSpec(
            image=self.image or provisioner.default_image,
            tag=self.tag or provisioner.default_tag,
            container_name=self.container_name or provisioner.default_container_name,
            host=self.host,
            host_port=self.host_port or provisioner.default_host_port,
            container_port=provisioner.container_port,
            environment=provisioner.container_environment(self.admin_password),
        )

    def master_descriptor(self, provisioner: "DatabaseProvisioner") -> ConnectionDescriptor:
        descriptor = build_master_descriptor(
            self.container_spec(provisioner), self.credentials(provisioner), provisioner.name
        )
        return descriptor.model_copy(
            update={
                "multiple_active_result_sets": self.multiple_active_result_sets,
                "odbc_driver": self.odbc_driver,
            }
        )
