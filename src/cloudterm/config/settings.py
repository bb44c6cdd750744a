"""Configuration management for cloudterm.

Loads settings from a YAML configuration file with environment variable
overrides for deployment values (SSH user, key path). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

from cloudterm.domain.models import InstanceRecord, SSHCredentials

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/cloudterm.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    websocket_path: str = Field(default="/")


class SSHConfig(BaseModel):
    username: str = Field(default="ec2-user")
    port: int = Field(default=22, ge=1, le=65535)
    private_key_path: Path | None = Field(default=None)
    private_key: SecretStr = Field(default=SecretStr(""), description="Inline key, wins over the path")
    passphrase: SecretStr | None = Field(default=None)
    ready_timeout: float = Field(default=30.0, gt=0)
    known_hosts: str | None = Field(default=None)

    def credentials(self) -> SSHCredentials:
        """Build the credentials handed to shell sessions.

        Reads ``private_key_path`` when no inline key is configured.
        """
        key = self.private_key
        if not key.get_secret_value() and self.private_key_path is not None:
            key = SecretStr(self.private_key_path.expanduser().read_text())
        return SSHCredentials(
            username=self.username,
            private_key=key,
            passphrase=self.passphrase,
            port=self.port,
            ready_timeout=self.ready_timeout,
            known_hosts=self.known_hosts,
        )


class TerminalConfig(BaseModel):
    term_type: str = Field(default="xterm-256color")
    cols: int = Field(default=80, gt=0)
    rows: int = Field(default=30, gt=0)


class ResolverConfig(BaseModel):
    backend: Literal["static", "http"] = Field(default="static")
    http_base_url: str = Field(default="http://localhost:8000")
    http_path: str = Field(default="/instances/{instance_id}")
    http_timeout: float = Field(default=10.0, gt=0)
    instances: dict[str, InstanceRecord] = Field(
        default_factory=dict, description="Instance table for the static backend"
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the cloudterm service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "CLOUDTERM_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    ssh_username = os.environ.get("SSH_USERNAME", "")
    ssh_key_path = os.environ.get("SSH_KEY_PATH", "")
    metadata_url = os.environ.get("INSTANCE_METADATA_URL", "")

    ssh = yaml_data.setdefault("ssh", {})
    if ssh_username and not ssh.get("username"):
        ssh["username"] = ssh_username
    if ssh_key_path and not ssh.get("private_key_path"):
        ssh["private_key_path"] = ssh_key_path

    if metadata_url:
        resolver = yaml_data.setdefault("resolver", {})
        if not resolver.get("backend"):
            resolver["backend"] = "http"
        if not resolver.get("http_base_url"):
            resolver["http_base_url"] = metadata_url
