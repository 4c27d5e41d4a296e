"""
GameStream client: one identity and transport shared by status probing,
pairing and session control.
"""

import functools
import logging

from config import DEFAULT_HTTP_PORT, DEVICE_NAME
from gamestream.errors import GameStreamError
from gamestream.models import App, HostRecord, StreamLaunchRequest, StreamSession
from gamestream.pairing import PairingEngine
from gamestream.serverinfo import ServerInfoFetcher
from gamestream.session import SessionController
from gamestream.transport import HttpTransport
from gamestream.version import VersionGate

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error..."


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host[:port]`` (or ``[v6]:port``) into address and HTTP port."""
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, _, port = address.partition(":")
    else:
        host, port = address, ""
    if not host:
        raise ValueError(f"Invalid host address: {address!r}")
    return host, int(port) if port else DEFAULT_HTTP_PORT


def _records_error(method):
    """Remember the message of any GameStreamError the wrapped call raises."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except GameStreamError as e:
            self.set_last_error(str(e))
            raise

    return wrapper


class GameStreamClient:
    """Entry point for talking to GameStream hosts."""

    def __init__(
        self,
        identity,
        transport=None,
        version_gate: VersionGate | None = None,
        device_name: str = DEVICE_NAME,
        launch_query_parameters: dict[str, str] | None = None,
    ):
        self.identity = identity
        self._transport = transport or HttpTransport(identity)
        unique_id = identity.unique_id
        self.server_info = ServerInfoFetcher(self._transport, version_gate, unique_id=unique_id)
        self.pairing = PairingEngine(
            self._transport, identity, unique_id=unique_id, device_name=device_name
        )
        self.sessions = SessionController(
            self._transport,
            unique_id=unique_id,
            launch_query_parameters=launch_query_parameters,
        )
        self._last_error = ""

    @property
    def last_error(self) -> str:
        return self._last_error or UNKNOWN_ERROR

    def set_last_error(self, text: str) -> None:
        self._last_error = text

    @_records_error
    def connect(self, address: str) -> HostRecord:
        """Create a record for ``address`` and run discovery on it."""
        host, http_port = parse_address(address)
        record = HostRecord(address=host, http_port=http_port)
        logger.info(f"Connecting to {host}:{http_port}")
        return self.server_info.ensure_status(record)

    @_records_error
    def refresh(self, host: HostRecord) -> HostRecord:
        return self.server_info.ensure_status(host)

    @_records_error
    def pair(self, host: HostRecord, pin: str) -> HostRecord:
        return self.pairing.pair(host, pin)

    @_records_error
    def unpair(self, host: HostRecord) -> HostRecord:
        return self.pairing.unpair(host)

    @_records_error
    def list_apps(self, host: HostRecord) -> list[App]:
        return self.sessions.list_apps(host)

    @_records_error
    def fetch_box_art(self, host: HostRecord, app_id: int) -> bytes:
        return self.sessions.fetch_box_art(host, app_id)

    @_records_error
    def start_app(self, host: HostRecord, request: StreamLaunchRequest, app_id: int) -> StreamSession:
        return self.sessions.start_app(host, request, app_id)

    @_records_error
    def quit_app(self, host: HostRecord) -> HostRecord:
        return self.sessions.quit_app(host)
