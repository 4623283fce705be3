"""
Core bootstrap constants.

Key names and defaults shared by the configuration store, the builder and the
runtime delegates.

Only place true invariants here (key names, defaults, bounds). Values that come
from the environment live in restboot.settings.
"""

from __future__ import annotations


# Well-known configuration keys
PROTOCOL = "protocol"
HOST = "host"
PORT = "port"
ROOT_PATH = "rootPath"
TLS_CONTEXT = "tlsContext"
TLS_CLIENT_AUTH_MODE = "tlsClientAuthMode"

WELL_KNOWN_KEYS = (
    PROTOCOL,
    HOST,
    PORT,
    ROOT_PATH,
    TLS_CONTEXT,
    TLS_CLIENT_AUTH_MODE,
)

# snake_case spellings accepted from mappings, YAML files and env settings
KEY_ALIASES = {
    "root_path": ROOT_PATH,
    "tls_context": TLS_CONTEXT,
    "tls_client_auth_mode": TLS_CLIENT_AUTH_MODE,
}

# Defaults (tlsContext default is created lazily, see configuration.store)
DEFAULT_PROTOCOL = "HTTP"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = -1
DEFAULT_ROOT_PATH = "/"

SUPPORTED_PROTOCOLS = ("HTTP", "HTTPS")

# Prefix for implementation-specific keys handed to uvicorn.Config
UVICORN_KEY_PREFIX = "uvicorn."

# Seconds uvicorn waits for in-flight requests before cancelling them
DEFAULT_GRACE_PERIOD = 10

# Seconds a delegate may take to bind and report readiness
STARTUP_TIMEOUT = 30.0

# Interval used while waiting for uvicorn to report readiness
STARTUP_POLL_INTERVAL = 0.05

# Environment prefix for pydantic-settings sources
ENV_PREFIX = "RESTBOOT_"
