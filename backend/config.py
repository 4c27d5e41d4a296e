"""Application-wide configuration constants."""

import json
import os
import platform
from pathlib import Path

_PREFIX = "STREAMBOOTH_"


def _env(name: str, default):
    return os.environ.get(_PREFIX + name, default)


# --- Identity ---
APP_ID = "stream-booth-v1"
# GameStream hosts key pairings on this id together with the client certificate
UNIQUE_ID = _env("UNIQUE_ID", "0123456789ABCDEF")
DEVICE_NAME = _env("DEVICE_NAME", platform.node() or "streambooth")

# --- Storage ---
CONFIG_DIR = Path(_env("CONFIG_DIR", Path.home() / ".streambooth"))
os.makedirs(CONFIG_DIR, exist_ok=True)

# --- Host protocol ---
DEFAULT_HTTP_PORT = int(_env("HTTP_PORT", 47989))
DEFAULT_HTTPS_PORT = int(_env("HTTPS_PORT", 47984))

MIN_SUPPORTED_HOST_VERSION = int(_env("MIN_HOST_VERSION", 3))
MAX_SUPPORTED_HOST_VERSION = int(_env("MAX_HOST_VERSION", 7))

# Hosts whose fourth appversion component is below this are Sunshine builds
SUNSHINE_BUILD_THRESHOLD = int(_env("SUNSHINE_BUILD_THRESHOLD", 0))

# seconds, per timeout tier
REQUEST_TIMEOUTS = {
    "short": float(_env("TIMEOUT_SHORT", 5)),
    "medium": float(_env("TIMEOUT_MEDIUM", 15)),
    "long": float(_env("TIMEOUT_LONG", 90)),
}

# Extra query parameters appended to /launch and /resume
LAUNCH_QUERY_PARAMETERS: dict[str, str] = json.loads(
    _env("LAUNCH_QUERY_PARAMETERS", '{"corever": "1"}')
)

# --- Networking ---
API_HOST = _env("API_HOST", "127.0.0.1")
API_PORT = int(_env("API_PORT", 8765))

# Browser origins allowed to call the API (JSON list); none by default
CORS_ORIGINS: list[str] = json.loads(_env("CORS_ORIGINS", "[]"))
