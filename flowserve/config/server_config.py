"""Server configuration for flowserve.

Resolution order (later wins):
    1. Dataclass defaults
    2. YAML file (flowserve/config/server.yaml, or an explicit path)
    3. Environment variables (FLOWSERVE_*)
    4. CLI flags (applied by flowserve.api.server.main)

Usage:
    from flowserve.config.server_config import load_server_config, load_flow

    config = load_server_config()
    flow = load_flow(config.flow)

Environment variables:
    FLOWSERVE_HOST                   - bind host
    FLOWSERVE_PORT                   - bind port
    FLOWSERVE_BASE_URL               - public URL prefix for absolute links
    FLOWSERVE_BASE_PATH              - route prefix of the flow endpoints
    FLOWSERVE_RUNS_DIR               - directory for run assets and logs
    FLOWSERVE_RUN_RETENTION_SECONDS  - evict finished runs after this long
    FLOWSERVE_LOG_LEVEL              - logging level name
    FLOWSERVE_FLOW                   - flow to serve, as module:attribute
    FLOWSERVE_STATIC_DIR             - directory served at /
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml

from ..runtime.flow import Flow

# Module logger
logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "server.yaml"
ENV_PREFIX = "FLOWSERVE_"


@dataclass
class ServerConfig:
    """Resolved server settings."""

    host: str = "localhost"
    port: int = 3001
    base_url: Optional[str] = None
    base_path: str = "/flow"
    runs_dir: str = "runs"
    run_retention_seconds: Optional[float] = None
    prune_interval_seconds: float = 60.0
    enable_cors: bool = True
    static_dir: Optional[str] = None
    log_level: str = "INFO"
    flow: str = "flowserve.flows.echo:echo_flow"

    @property
    def public_base_url(self) -> str:
        """base_url, or the URL derived from host and port."""
        return self.base_url or f"http://{self.host}:{self.port}"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_optional_float(value: str) -> Optional[float]:
    value = value.strip()
    if value == "" or value.lower() in ("none", "null"):
        return None
    return float(value)


# Field name -> parser for values coming from strings
_PARSERS: Dict[str, Callable[[str], Any]] = {
    "port": int,
    "run_retention_seconds": _parse_optional_float,
    "prune_interval_seconds": float,
    "enable_cors": _parse_bool,
}


def _coerce(name: str, value: Any, source: str) -> Any:
    """Convert a raw value for field ``name``; raise ValueError naming the source."""
    if value is None or not isinstance(value, str):
        return value
    parser = _PARSERS.get(name)
    if parser is None:
        return value
    try:
        return parser(value)
    except ValueError:
        raise ValueError(f"Invalid value for {source}: {value!r}")


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML config file; a missing file yields an empty dict."""
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    server = data.get("server", data)
    if not isinstance(server, dict):
        raise ValueError(f"'server' section of {path} must be a mapping")
    return server


def load_server_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ServerConfig:
    """Resolve the server configuration.

    Args:
        path: YAML file to read. Defaults to the packaged server.yaml.
        env: Environment mapping. Defaults to os.environ.

    Returns:
        The resolved ServerConfig.

    Raises:
        ValueError: On unparsable values or an invalid config file.
    """
    env = os.environ if env is None else env
    config_path = Path(path) if path is not None else _CONFIG_PATH

    values: Dict[str, Any] = {}
    known = {f.name for f in fields(ServerConfig)}

    for key, value in _load_yaml(config_path).items():
        if key not in known:
            logger.warning("Ignoring unknown config key '%s' in %s", key, config_path)
            continue
        values[key] = _coerce(key, value, f"{config_path}:{key}")

    for name in known:
        env_name = ENV_PREFIX + name.upper()
        if env_name in env:
            values[name] = _coerce(name, env[env_name], env_name)

    config = ServerConfig(**values)
    logger.debug("Resolved server config: %s", config)
    return config


def load_flow(reference: str) -> Flow[Any, Any]:
    """Import a flow given as ``module:attribute``.

    Raises:
        ValueError: If the reference is malformed or does not name a Flow.
        ImportError: If the module cannot be imported.
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Flow must be given as 'module:attribute', got {reference!r}")

    module = importlib.import_module(module_name)
    try:
        flow = getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{attribute}'")

    if not isinstance(flow, Flow):
        raise ValueError(f"{reference} is not a Flow (got {type(flow).__name__})")
    return flow
