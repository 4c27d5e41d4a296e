"""
Blocking HTTP(S) transport used for every host request.

Hosts authenticate the client by its certificate, so every request is made
with the client identity's key pair. Hosts present self-signed certificates,
which are not verified here.
"""

import logging
from enum import Enum

import requests
import urllib3

from config import REQUEST_TIMEOUTS
from gamestream.errors import HostError, HostIOError
from gamestream.models import HostRecord

logger = logging.getLogger(__name__)

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class RequestTimeout(str, Enum):
    """Timeout tiers, chosen per operation by expected host latency."""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


def base_url(host: HostRecord, https: bool) -> str:
    """Scheme, address and port of the host's HTTP or HTTPS endpoint."""
    address = f"[{host.address}]" if ":" in host.address else host.address
    if https:
        return f"https://{address}:{host.https_port}"
    return f"http://{address}:{host.http_port}"


class HttpTransport:
    """requests-based GET with the client certificate attached."""

    def __init__(self, identity, timeouts: dict[str, float] | None = None) -> None:
        self._timeouts = dict(REQUEST_TIMEOUTS if timeouts is None else timeouts)
        self._session = requests.Session()
        self._session.cert = (str(identity.cert_path), str(identity.key_path))
        self._session.verify = False

    def get(self, url: str, params: dict, timeout: RequestTimeout) -> bytes:
        """Perform a GET and return the raw body."""
        logger.debug(f"GET {url} ({timeout.value})")
        try:
            response = self._session.get(
                url, params=params, timeout=self._timeouts[timeout.value]
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise HostError(e.response.status_code, str(e)) from e
        except requests.RequestException as e:
            raise HostIOError(f"Request to {url} failed: {e}") from e
        return response.content

    def close(self) -> None:
        self._session.close()
