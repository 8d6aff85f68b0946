"""Server configuration.

Values come from, in order of precedence: explicit arguments, the YAML
config file, ``DRIVERELAY_*`` environment variables, defaults.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_ENV_VAR = "DRIVERELAY_CONFIG"
DEFAULT_CONFIG_FILE = "driverelay.yaml"


class ServerSettings(BaseSettings):
    """Settings for the relay server."""

    model_config = SettingsConfigDict(
        env_prefix="DRIVERELAY_",
        env_file=".env",
        extra="ignore",
    )

    # Network
    host: str = "0.0.0.0"  # nosec B104
    port: int = 8080
    workers: int = 1
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    tus_path: str = "/files"

    # Local staging and state
    storage_path: Path = Path("./storage")
    state_backend: Literal["memory", "file", "redis"] = "file"
    redis_url: Optional[str] = None
    staging_fsync: bool = True
    max_upload_size: Optional[int] = None
    recover_on_startup: bool = True

    # Remote destination
    remote_backend: Literal["gcs", "drive", "local"] = "gcs"
    gcs_bucket: str = ""
    gcs_prefix: str = ""
    gcp_project: Optional[str] = None
    drive_id: str = ""
    drive_folder_id: str = ""
    local_remote_path: Path = Path("./storage/remote")
    remote_timeout: float = 300.0

    # Credentials
    credentials_file: Optional[Path] = None
    credentials_subject: Optional[str] = None
    credentials_scopes: list[str] = Field(default_factory=list)

    # Logging
    env: str = "local"
    log_level: str = "INFO"

    _config_path: Optional[Path] = PrivateAttr(default=None)

    @property
    def uploads_path(self) -> Path:
        return self.storage_path / "uploads"

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path


def _discover_config(config_path: Optional[Path]) -> Optional[Path]:
    if config_path is not None:
        if not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return Path(config_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        if not Path(env_path).exists():
            raise FileNotFoundError(f"Config file not found: {env_path} (from {CONFIG_ENV_VAR})")
        return Path(env_path)

    default = Path.cwd() / DEFAULT_CONFIG_FILE
    return default if default.exists() else None


def load_server_settings(config_path: Optional[Path] = None, **overrides: Any) -> ServerSettings:
    """Load settings from the config file and environment.

    Args:
        config_path: YAML file (None = ``$DRIVERELAY_CONFIG`` or ``./driverelay.yaml``)
        **overrides: Values that win over everything else

    Returns:
        ServerSettings
    """
    path = _discover_config(config_path)
    data: dict[str, Any] = {}
    if path is not None:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded)

    data.update({k: v for k, v in overrides.items() if v is not None})
    settings = ServerSettings(**data)
    settings._config_path = path
    return settings
