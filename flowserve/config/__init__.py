# flowserve/config package
# Server settings resolved from defaults, server.yaml, FLOWSERVE_* env vars and CLI flags.

from .server_config import ServerConfig, load_flow, load_server_config

__all__ = ["ServerConfig", "load_flow", "load_server_config"]
