"""Exceptions raised by the GameStream control protocol client."""

from enum import Enum


class GameStreamError(Exception):
    """Base class for every failure reported by a host operation."""


class HostIOError(GameStreamError):
    """The request never produced a response (connection, TLS, timeout)."""


class HostError(GameStreamError):
    """The host answered with a non-success status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        self.status_message = message
        super().__init__(message or f"Host returned status {status_code}")


class InvalidResponseError(GameStreamError):
    """The host's response could not be parsed."""


class MissingFieldError(InvalidResponseError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Host response is missing '{field}'")


class WrongStateError(GameStreamError):
    """Operation not allowed in the host's current state."""


class VersionProblem(str, Enum):
    TOO_NEW = "too_new"
    TOO_OLD = "too_old"


class UnsupportedVersionError(GameStreamError):
    def __init__(self, kind: VersionProblem, message: str):
        self.kind = kind
        super().__init__(message)


class NotSupported4KError(GameStreamError):
    """A 4K stream was requested from a host without 4K support."""


class PairingFailedError(GameStreamError):
    """The pairing handshake was rejected, e.g. wrong PIN or forged signature."""


class OperationFailedError(GameStreamError):
    """The host accepted the request but reported that it did not succeed."""
