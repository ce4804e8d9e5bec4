"""Configuration using pydantic-settings.

Configuration hierarchy:
- DockerConfig: Container engine connection settings
- MySQLConfig: Shared database engine settings
- StackConfig: Fixed names and images of the hosting stack
- LoggingConfig: Logging behavior
- ServerConfig: HTTP server settings
- AppConfig: Main config aggregating all sub-configs

Environment variable prefix: CF_
Example: CF_STACK_NETWORK=my-network
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DockerConfig(BaseSettings):
    """Docker engine configuration."""

    model_config = SettingsConfigDict(env_prefix="CF_DOCKER_")

    # Connection
    host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Docker daemon socket or TCP address",
    )

    # Timeouts
    api_timeout: float = Field(default=30.0, description="Docker API call timeout (seconds)")
    image_pull_timeout: float = Field(default=600.0, description="Image pull timeout (seconds)")
    stop_timeout: int = Field(
        default=10,
        description="Grace period before a stopped container is killed (seconds)",
    )


class MySQLConfig(BaseSettings):
    """Shared MySQL engine configuration.

    host/port must reach the database container from this process
    (directly or through a tunnel set up by the caller).
    """

    model_config = SettingsConfigDict(env_prefix="CF_MYSQL_")

    host: str = Field(default="127.0.0.1", description="MySQL host")
    port: int = Field(default=3306, description="MySQL port")
    root_user: str = Field(default="root", description="Administrative user")
    # Empty default forces explicit configuration
    root_password: str = Field(default="", description="Administrative password (required)")
    connect_timeout: float = Field(default=5.0, description="Connect timeout (seconds)")

    # Readiness poll
    readiness_retries: int = Field(default=10, description="Health probe attempts")
    readiness_delay: float = Field(default=5.0, description="Delay between probes (seconds)")


class StackConfig(BaseSettings):
    """Hosting stack layout.

    These settings define resource names, default images and the routing
    labels written on site containers.
    """

    model_config = SettingsConfigDict(env_prefix="CF_STACK_")

    # Shared infrastructure
    network: str = Field(default="CF-WP", description="Bridge network shared by the stack")
    proxy_name: str = Field(default="traefik", description="Reverse proxy container name")
    proxy_image: str = Field(default="traefik:v2.11", description="Reverse proxy image")
    proxy_domain: str = Field(
        default="traefik.localhost",
        description="Domain serving the reverse proxy dashboard",
    )
    database_name: str = Field(default="mysql", description="Database container name")
    database_image: str = Field(default="mysql:5.7", description="Database image")
    database_volume: str = Field(default="mysql-data", description="Database storage volume")

    # Site containers
    site_prefix: str = Field(default="wordpress-", description="Prefix of site container names")
    site_image: str = Field(default="wordpress:latest", description="Site image")
    default_domain_suffix: str = Field(
        default="localhost",
        description="Domain suffix used when a project is created without a domain",
    )
    entrypoint: str = Field(default="web", description="Reverse proxy entrypoint for sites")
    cert_resolver: str = Field(
        default="",
        description="TLS certificate resolver for site routers (empty disables TLS)",
    )
    label_namespace: str = Field(
        default="container-flow",
        description="Namespace of the bookkeeping labels on site containers",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats for different environments:
    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="CF_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="containerflow", description="Service identifier in logs")
    rate_limit_seconds: float = Field(
        default=5.0, description="Window in which a repeated event on one resource is dropped"
    )


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="CF_SERVER_")

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8765, description="Server port")
    api_key: str = Field(default="", description="API key for authentication")
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )


class AppConfig(BaseSettings):
    """Main configuration aggregating all sub-configs.

    Environment variable prefix: CF_
    Sub-configs use their own prefixes (CF_DOCKER_, CF_MYSQL_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="CF_",
        env_nested_delimiter="__",
    )

    docker: DockerConfig = Field(default_factory=DockerConfig)
    mysql: MySQLConfig = Field(default_factory=MySQLConfig)
    stack: StackConfig = Field(default_factory=StackConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


@lru_cache
def get_config() -> AppConfig:
    """Get cached configuration singleton."""
    return AppConfig()
