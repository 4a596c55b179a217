"""Console configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Console settings loaded from environment variables."""

    # Container naming
    container_prefix: str = "nexus-node"

    # Node image
    image_name: str = "nexus-node:latest"
    base_image: str = "ubuntu:24.04"
    installer_url: str = "https://cli.nexus.xyz/"

    # Node credential and in-container paths
    credential_env_var: str = "NODE_ID"
    container_log_path: str = "/root/nexus.log"

    # Host-side node logs
    log_dir: str = "/root/nexus_logs"
    log_file_prefix: str = "nexus"
    log_file_mode: int = 0o644

    # Log cleanup schedule (cron.d)
    cron_dir: str = "/etc/cron.d"
    cron_file_prefix: str = "nexus-log"
    cron_user: str = "root"
    cleanup_schedule: str = "0 0 * * *"  # once daily

    # Docker settings
    docker_socket: str = ""  # Empty: use DOCKER_HOST / defaults
    docker_client_timeout: int = 120  # seconds

    # Reject node ids outside [A-Za-z0-9_-]
    strict_node_ids: bool = True

    # Console logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # Prometheus textfile output (disabled when empty)
    metrics_textfile: str = ""

    class Config:
        env_prefix = "NEXUS_FLEET_"


settings = Settings()
