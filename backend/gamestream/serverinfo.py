"""
Host status probing via the /serverinfo endpoint.

Some host generations refuse HTTPS status queries from clients that are not
paired yet, while only HTTPS reliably reports the true pair status. Status
is therefore fetched over both, HTTPS first, and ``HostRecord.status_over_https``
records which one answered.
"""

import logging

from config import DEFAULT_HTTPS_PORT, UNIQUE_ID
from gamestream.document import HostDocument
from gamestream.errors import GameStreamError, InvalidResponseError, MissingFieldError
from gamestream.models import HostRecord
from gamestream.transport import RequestTimeout, base_url
from gamestream.version import VersionGate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "currentgame",
    "PairStatus",
    "appversion",
    "state",
    "ServerCodecModeSupport",
    "gputype",
    "GsVersion",
    "hostname",
    "GfeVersion",
    "HttpsPort",
    "mac",
)
# present on every supported host version, so they may not be empty either
NON_EMPTY_FIELDS = ("currentgame", "PairStatus", "appversion", "state")

BUSY_STATE_SUFFIX = "_SERVER_BUSY"


def _to_int(field: str, text: str) -> int:
    if not text:
        return 0
    try:
        return int(text)
    except ValueError as e:
        raise InvalidResponseError(f"Field '{field}' is not a number: {text!r}") from e


class ServerInfoFetcher:
    """Fetches host identity, capability and state into a HostRecord."""

    def __init__(
        self,
        transport,
        version_gate: VersionGate | None = None,
        unique_id: str = UNIQUE_ID,
    ) -> None:
        self._transport = transport
        self._version_gate = version_gate or VersionGate()
        self._unique_id = unique_id

    def fetch(self, host: HostRecord, https: bool) -> HostRecord:
        """
        Query /serverinfo once and update ``host`` in place.

        The record is only modified after every field parsed, so a failed
        fetch leaves it untouched.
        """
        url = f"{base_url(host, https)}/serverinfo"
        body = self._transport.get(url, {"uniqueid": self._unique_id}, RequestTimeout.SHORT)
        doc = HostDocument.parse(body).check_status()

        fields = {name: doc.require(name) for name in REQUIRED_FIELDS}
        for name in NON_EMPTY_FIELDS:
            if not fields[name]:
                raise MissingFieldError(name)

        current_game = _to_int("currentgame", fields["currentgame"])
        codec_support = _to_int("ServerCodecModeSupport", fields["ServerCodecModeSupport"])
        https_port = _to_int("HttpsPort", fields["HttpsPort"]) or DEFAULT_HTTPS_PORT

        # Newer hosts keep currentgame set after a stream ends; only trust it
        # while the host reports itself busy.
        if not fields["state"].endswith(BUSY_STATE_SUFFIX):
            current_game = 0

        host.paired = fields["PairStatus"] == "1"
        host.active_app = current_game
        host.app_version = fields["appversion"]
        host.codec_mode_support = codec_support
        host.gpu_type = fields["gputype"]
        host.gs_version = fields["GsVersion"]
        host.hostname = fields["hostname"]
        host.gfe_version = fields["GfeVersion"]
        host.mac = fields["mac"]
        host.status_over_https = https
        if not host.https_port:
            host.https_port = https_port

        logger.debug(
            f"serverinfo from {host.address} over {'https' if https else 'http'}: "
            f"version {host.app_version}, paired={host.paired}, app={host.active_app}"
        )
        return host

    def ensure_status(self, host: HostRecord) -> HostRecord:
        """
        Bring ``host`` up to date and check its version is supported.

        Learns the HTTPS port over HTTP first if it is still unknown, then
        tries HTTPS followed by HTTP, keeping the first answer.
        """
        if not host.https_port:
            self.fetch(host, https=False)

        last_error: GameStreamError | None = None
        for https in (True, False):
            try:
                self.fetch(host, https=https)
                break
            except GameStreamError as e:
                logger.info(
                    f"serverinfo over {'https' if https else 'http'} failed for {host.address}: {e}"
                )
                last_error = e
        else:
            raise last_error

        self._version_gate.check(host.major_version)
        return host
