"""Field lookup in the XML documents GameStream hosts answer with."""

import logging
import xml.etree.ElementTree as ET

from gamestream.errors import HostError, InvalidResponseError, MissingFieldError
from gamestream.models import App

logger = logging.getLogger(__name__)

STATUS_OK = 200


class HostDocument:
    """A parsed host response: ``<root status_code="200">...</root>``."""

    def __init__(self, root: ET.Element) -> None:
        self._root = root

    @classmethod
    def parse(cls, body: bytes) -> "HostDocument":
        try:
            return cls(ET.fromstring(body))
        except ET.ParseError as e:
            raise InvalidResponseError(f"Malformed host response: {e}") from e

    @property
    def status_code(self) -> int:
        try:
            return int(self._root.get("status_code", STATUS_OK))
        except ValueError as e:
            raise InvalidResponseError("Malformed status_code in host response") from e

    def check_status(self) -> "HostDocument":
        """Raise HostError unless the host reported success."""
        code = self.status_code
        if code != STATUS_OK:
            message = self._root.get("status_message", "")
            logger.debug(f"Host reported status {code}: {message}")
            raise HostError(code, message)
        return self

    def search(self, name: str) -> str | None:
        """Text of the first element called ``name``, or None if absent."""
        element = self._root.find(f".//{name}")
        if element is None:
            return None
        return (element.text or "").strip()

    def require(self, name: str) -> str:
        value = self.search(name)
        if value is None:
            raise MissingFieldError(name)
        return value

    def apps(self) -> list[App]:
        apps = []
        for element in self._root.iter("App"):
            title = element.findtext("AppTitle")
            app_id = element.findtext("ID")
            if title is None or app_id is None:
                raise InvalidResponseError("App entry without AppTitle or ID")
            try:
                apps.append(App(
                    id=int(app_id),
                    title=title.strip(),
                    hdr_supported=(element.findtext("IsHdrSupported") or "0").strip() == "1",
                ))
            except ValueError as e:
                raise InvalidResponseError(f"Invalid app id {app_id!r}") from e
        return apps
