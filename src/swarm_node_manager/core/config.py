"""
config.py
- Builds the immutable runtime configuration for one invocation.
- Layers, lowest precedence first: defaults, YAML config file, environment, CLI flags.
- The resulting NodeManagerConfig is passed explicitly to every component.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from swarm_node_manager.core.constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_DOCKER_API_PORT,
    DEFAULT_DRAIN_INTERVAL,
    DEFAULT_DRAIN_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
)
from swarm_node_manager.core.errors import ConfigError
from swarm_node_manager.core.models import ManagerEndpoint


class Mode(str, Enum):
    STARTUP = "startup"
    SHUTDOWN = "shutdown"

    @classmethod
    def parse(cls, value):
        aliases = {"startup": cls.STARTUP, "su": cls.STARTUP, "shutdown": cls.SHUTDOWN, "sd": cls.SHUTDOWN}
        if not value:
            raise ConfigError("Mode not specified. Use -m startup|su or -m shutdown|sd.")
        try:
            return aliases[str(value).strip().lower()]
        except KeyError:
            raise ConfigError(f"Invalid mode specified: {value}. Valid modes are startup (su) or shutdown (sd).")


# --- Environment Overrides ---
# env var -> config key
ENV_OVERRIDES = {
    "MANAGER_ADDRESSES": "manager_addresses",
    "DOCKER_API_PORT": "docker_api_port",
    "DRAIN_TIMEOUT": "timeout",
    "DRAIN_INTERVAL": "interval",
    "REQUEST_TIMEOUT": "request_timeout",
    "GPU_NODE": "gpu_node",
    "DRY_RUN": "simulate",
    "VERBOSE": "verbose",
    "DEBUG": "debug",
    "SENTRY_DSN": "sentry_dsn",
}

BOOL_KEYS = {"gpu_node", "simulate", "verbose", "debug"}
INT_KEYS = {"docker_api_port", "timeout", "interval", "request_timeout"}

DEFAULTS = {
    "manager_addresses": None,
    "docker_api_port": DEFAULT_DOCKER_API_PORT,
    "gpu_node": False,
    "simulate": False,
    "timeout": DEFAULT_DRAIN_TIMEOUT,
    "interval": DEFAULT_DRAIN_INTERVAL,
    "request_timeout": DEFAULT_REQUEST_TIMEOUT,
    "verbose": False,
    "debug": False,
    "sentry_dsn": None,
}


@dataclass(frozen=True)
class NodeManagerConfig:
    mode: Mode
    manager_addresses: Tuple[str, ...] = ()
    docker_api_port: int = DEFAULT_DOCKER_API_PORT
    gpu_node: bool = False
    simulate: bool = False
    timeout: int = DEFAULT_DRAIN_TIMEOUT
    interval: int = DEFAULT_DRAIN_INTERVAL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    verbose: bool = False
    debug: bool = False
    sentry_dsn: Optional[str] = None
    config_path: str = DEFAULT_CONFIG_PATH

    @property
    def log_level(self):
        return "DEBUG" if self.debug else "INFO"

    def manager_endpoints(self):
        """Return the pinned manager endpoints in configured order (may be empty)."""
        try:
            return [ManagerEndpoint.parse(a, self.docker_api_port) for a in self.manager_addresses]
        except ValueError as e:
            raise ConfigError(str(e))


def config_path_from_env(environ=None):
    environ = os.environ if environ is None else environ
    return environ.get("SWARM_NODE_MANAGER_CONFIG", DEFAULT_CONFIG_PATH)


def _as_bool(key, value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _as_int(key, value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r} (expected an integer)")


def _as_addresses(value):
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(a).strip() for a in value if str(a).strip())


def _coerce(key, value):
    if key in BOOL_KEYS:
        return _as_bool(key, value)
    if key in INT_KEYS:
        return _as_int(key, value)
    if key == "manager_addresses":
        return _as_addresses(value)
    return value


def build_config(mode, cli_values=None, file_values=None, environ=None, config_path=DEFAULT_CONFIG_PATH):
    """
    Merge every configuration layer into a validated NodeManagerConfig.

    Args:
        mode (str): Raw mode from the command line (startup|su|shutdown|sd).
        cli_values (dict): Flags given on the command line; None means "not given".
        file_values (dict): Parsed YAML config file.
        environ (Mapping): Environment, defaults to os.environ.
        config_path (str): Path the file layer was read from.

    Returns:
        NodeManagerConfig

    Raises:
        ConfigError: On an invalid mode, port, timeout or interval.
    """
    environ = os.environ if environ is None else environ
    merged = dict(DEFAULTS)

    for key, value in (file_values or {}).items():
        if key in merged:
            merged[key] = value

    for env_name, key in ENV_OVERRIDES.items():
        if environ.get(env_name) not in (None, ""):
            merged[key] = environ[env_name]

    for key, value in (cli_values or {}).items():
        if value is not None and key in merged:
            merged[key] = value

    values = {key: _coerce(key, value) for key, value in merged.items()}

    port = values["docker_api_port"]
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid port number: {port}. Port number must be an integer between 1 and 65535.")
    for key in ("timeout", "interval", "request_timeout"):
        if values[key] <= 0:
            raise ConfigError(f"Invalid {key}: {values[key]} (must be a positive number of seconds)")

    config = NodeManagerConfig(mode=Mode.parse(mode), config_path=config_path, **values)
    # fail early on malformed addresses
    config.manager_endpoints()
    return config
