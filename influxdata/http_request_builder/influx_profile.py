"""Connection profile and configuration loading for the request builders."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from influx_errors import ConfigError

DEFAULT_VERSION = "2.x"
V3_VERSION = "3"

PROFILE_KEYS = ("host", "port", "database", "org", "version", "token")

ENV_MAPPINGS = {
    "INFLUXDB_HOST": "host",
    "INFLUXDB_PORT": "port",
    "INFLUXDB_DATABASE": "database",
    "INFLUXDB_ORG": "org",
    "INFLUXDB_VERSION": "version",
    "INFLUXDB_TOKEN": "token",
}


@dataclass(frozen=True)
class ConnectionProfile:
    """Connection and auth parameters for one InfluxDB instance.

    The token is excluded from ``repr`` so profiles can be logged safely.
    """

    host: str = "localhost"
    port: Union[int, str] = 8086
    database: str = ""
    org: str = ""
    version: str = DEFAULT_VERSION
    token: str = field(default="", repr=False)

    def __post_init__(self):
        object.__setattr__(self, "version", normalize_version(self.version))

    @property
    def is_v3(self) -> bool:
        return self.version == V3_VERSION

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConnectionProfile":
        values: Dict[str, Any] = {}
        for key in PROFILE_KEYS:
            value = data.get(key)
            if value is None:
                continue
            if key == "version":
                value = normalize_version(value)
            elif key != "port":
                value = str(value)
            values[key] = value
        return cls(**values)


def normalize_version(version: Any) -> str:
    """Normalize a configured version so that ``3`` and ``"3"`` compare equal."""
    if version is None or str(version).strip() == "":
        return DEFAULT_VERSION
    return str(version).strip()


def require_profile(profile: Optional[ConnectionProfile]) -> ConnectionProfile:
    """Return the profile if it is usable, else raise ConfigError."""
    if profile is None:
        raise ConfigError("No InfluxDB configuration defined", field="profile")
    if not profile.token:
        raise ConfigError(
            "No token provided in InfluxDB configuration", field="token"
        )
    return profile


def coerce_int_setting(value: Any, default: int) -> int:
    """Parse a numeric trigger setting, falling back to the default when unset or invalid."""
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _resolve_config_file(config_file_path: str) -> Path:
    path = Path(config_file_path)
    if path.is_absolute():
        return path
    plugin_dir_var: Optional[str] = os.getenv("PLUGIN_DIR", None)
    if not plugin_dir_var:
        raise ConfigError(
            "PLUGIN_DIR environment variable not set", field="config_file_path",
            value=config_file_path,
        )
    return Path(plugin_dir_var) / path


def load_config(
    influxdb3_local,
    task_id: str,
    args: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge trigger configuration from environment, args and an optional TOML file.
    Priority: config file > args > environment variables
    """
    config_data: Dict[str, Any] = {}

    # 1. Environment variables (lowest priority)
    for env_var, config_key in ENV_MAPPINGS.items():
        if env_var in os.environ:
            config_data[config_key] = os.environ[env_var]

    # 2. Trigger arguments
    if args:
        for key, value in args.items():
            if key != "config_file_path" and value is not None:
                config_data[key] = value

    # 3. Config file
    config_file_path = args.get("config_file_path") if args else None
    if config_file_path:
        try:
            config_file = _resolve_config_file(config_file_path)
            if config_file.exists():
                with open(config_file, "rb") as f:
                    file_config = tomllib.load(f)
                config_data.update(file_config)
                influxdb3_local.info(
                    f"[{task_id}] Loaded configuration from {config_file}"
                )
            else:
                influxdb3_local.warn(
                    f"[{task_id}] Config file {config_file} not found, using args only"
                )
        except Exception as e:
            influxdb3_local.error(f"[{task_id}] Failed to load config file: {e}")
            raise

    return config_data


def load_profile(config: Mapping[str, Any]) -> Optional[ConnectionProfile]:
    """
    Build the connection profile selected by a merged configuration mapping.

    A ``profile`` key selects a named table from ``[profiles.<name>]``. Without
    it the flat keys are used. Returns None when nothing is configured, which the
    builders report as a missing configuration.
    """
    profile_name = config.get("profile")
    if profile_name:
        profiles = config.get("profiles") or {}
        selected = profiles.get(str(profile_name))
        if not isinstance(selected, Mapping):
            return None
        return ConnectionProfile.from_mapping(selected)

    if not any(config.get(key) not in (None, "") for key in PROFILE_KEYS):
        return None
    return ConnectionProfile.from_mapping(config)
