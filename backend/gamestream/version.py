"""Host version parsing and the supported-version gate."""

import logging
import re

from config import MAX_SUPPORTED_HOST_VERSION, MIN_SUPPORTED_HOST_VERSION
from gamestream.errors import UnsupportedVersionError, VersionProblem

logger = logging.getLogger(__name__)

_COMPONENT = re.compile(r"\s*([+-]?\d+)")


def parse_version_quad(text: str) -> list[int]:
    """
    Parse an appversion string such as ``"7.1.431.-1"`` into four integers.

    Missing or non-numeric components are 0, so ``"7.1"`` gives
    ``[7, 1, 0, 0]``. A single separator character is skipped after each
    component.
    """
    quad = []
    pos = 0
    for _ in range(4):
        match = _COMPONENT.match(text, pos)
        if match:
            quad.append(int(match.group(1)))
            pos = match.end()
        else:
            quad.append(0)
        if pos < len(text):
            pos += 1
    return quad


class VersionGate:
    """Rejects hosts whose major version is outside the supported range."""

    def __init__(
        self,
        min_version: int = MIN_SUPPORTED_HOST_VERSION,
        max_version: int = MAX_SUPPORTED_HOST_VERSION,
    ) -> None:
        self.min_version = min_version
        self.max_version = max_version

    def check(self, major_version: int) -> None:
        if major_version > self.max_version:
            logger.warning(f"Host version {major_version} is newer than {self.max_version}")
            raise UnsupportedVersionError(
                VersionProblem.TOO_NEW,
                "The host runs a newer GameStream version than this client supports. "
                "Update Stream Booth or downgrade the host software and try again.",
            )
        if major_version < self.min_version:
            logger.warning(f"Host version {major_version} is older than {self.min_version}")
            raise UnsupportedVersionError(
                VersionProblem.TOO_OLD,
                "Stream Booth requires a newer version of the host software. "
                "Please upgrade it on your PC and try again.",
            )
