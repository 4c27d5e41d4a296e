"""
Five-stage GameStream pairing handshake.

The client and host prove knowledge of the same PIN and exchange
certificates:

1. send a salt and our certificate, receive the host certificate
2. send an encrypted random challenge, receive the host's response hash
   and its own challenge
3. answer the host challenge, receive the host's signed secret
4. send our signed secret
5. confirm over HTTPS with the now trusted certificate

Any failure after the preconditions unpairs the client again so the host is
never left half paired.
"""

import logging
import secrets
from dataclasses import dataclass
from enum import Enum

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from config import DEVICE_NAME, UNIQUE_ID
from gamestream.document import HostDocument
from gamestream.errors import (
    InvalidResponseError,
    PairingFailedError,
    WrongStateError,
)
from gamestream.models import HostRecord
from gamestream.transport import RequestTimeout, base_url
from security.crypto import (
    AesKey,
    Challenge,
    PairingHash,
    Salt,
    Secret,
    Signature,
    aes_decrypt,
    aes_encrypt,
    derive_pin_key,
    load_certificate,
    select_pairing_hash,
    verify_signature,
)

logger = logging.getLogger(__name__)

PIN_DIGITS = 4


def generate_pin() -> str:
    """Random PIN for the user to enter on the host."""
    return "".join(secrets.choice("0123456789") for _ in range(PIN_DIGITS))


class PairingState(str, Enum):
    IDLE = "idle"
    SALT_SENT = "salt_sent"
    CHALLENGE_SENT = "challenge_sent"
    CLIENT_CHALLENGE_RESP_SENT = "client_challenge_resp_sent"
    CLIENT_PAIRING_SECRET_SENT = "client_pairing_secret_sent"
    PAIR_CHALLENGE_SENT = "pair_challenge_sent"
    PAIRED = "paired"
    FAILED = "failed"


@dataclass
class PairingSession:
    """
    State of one pairing attempt. Discarded when the attempt ends and
    never persisted.
    """
    hash_family: PairingHash
    salt: Salt
    key: AesKey
    client_challenge: Challenge
    client_secret: Secret
    state: PairingState = PairingState.IDLE
    server_cert: x509.Certificate | None = None
    server_response: bytes = b""
    server_challenge: Challenge | None = None
    server_secret: Secret | None = None
    server_signature: Signature | None = None

    @classmethod
    def start(cls, major_version: int, pin: str) -> "PairingSession":
        hash_family = select_pairing_hash(major_version)
        salt = Salt.random()
        return cls(
            hash_family=hash_family,
            salt=salt,
            key=derive_pin_key(hash_family, salt, pin),
            client_challenge=Challenge.random(),
            client_secret=Secret.random(),
        )


def _unhex(field: str, text: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise InvalidResponseError(f"Field '{field}' is not valid hex") from e


class PairingEngine:
    """Runs the pairing handshake against one host."""

    def __init__(
        self,
        transport,
        identity,
        unique_id: str = UNIQUE_ID,
        device_name: str = DEVICE_NAME,
    ) -> None:
        self._transport = transport
        self._identity = identity
        self._unique_id = unique_id
        self._device_name = device_name

    def pair(self, host: HostRecord, pin: str) -> HostRecord:
        if host.paired:
            raise WrongStateError("Already paired")
        if host.active_app != 0:
            raise WrongStateError(
                "The computer is currently in a game. "
                "You must close the game before pairing"
            )
        if not host.https_port:
            raise WrongStateError("Host status has not been fetched yet")

        session = PairingSession.start(host.major_version, pin)
        logger.info(
            f"Pairing with generation {host.major_version} host {host.address} "
            f"using {session.hash_family.name}"
        )
        try:
            self._get_server_cert(host, session)
            self._send_client_challenge(host, session)
            self._send_challenge_response(host, session)
            self._send_pairing_secret(host, session)
            self._send_pair_challenge(host, session)
        except Exception:
            logger.warning(f"Pairing with {host.address} failed in state {session.state.value}")
            session.state = PairingState.FAILED
            self._unpair_quietly(host)
            raise

        host.paired = True
        host.server_cert = session.server_cert.public_bytes(
            serialization.Encoding.PEM
        ).decode("ascii")
        logger.info(f"Paired with {host.address}")
        return host

    def unpair(self, host: HostRecord) -> HostRecord:
        """Ask the host to forget this client. Safe to repeat."""
        url = f"{base_url(host, https=False)}/unpair"
        self._transport.get(url, {"uniqueid": self._unique_id}, RequestTimeout.SHORT)
        host.paired = False
        return host

    def _unpair_quietly(self, host: HostRecord) -> None:
        try:
            self.unpair(host)
        except Exception as e:
            logger.warning(f"Unpairing {host.address} after failed pairing also failed: {e}")

    def _pair_request(self, host: HostRecord, https: bool, **stage_params) -> HostDocument:
        params = {
            "uniqueid": self._unique_id,
            "devicename": self._device_name,
            "updateState": 1,
            **stage_params,
        }
        body = self._transport.get(
            f"{base_url(host, https)}/pair", params, RequestTimeout.LONG
        )
        doc = HostDocument.parse(body).check_status()
        if doc.require("paired") != "1":
            raise PairingFailedError("The host rejected the pairing request")
        return doc

    def _get_server_cert(self, host: HostRecord, session: PairingSession) -> None:
        logger.info("Start pairing stage #1")
        session.state = PairingState.SALT_SENT
        doc = self._pair_request(
            host,
            https=False,
            phrase="getservercert",
            salt=session.salt.hex(),
            clientcert=self._identity.cert_pem.hex(),
        )
        plaincert = doc.require("plaincert")
        if not plaincert:
            raise WrongStateError("Another pairing attempt is already in progress")
        try:
            session.server_cert = load_certificate(_unhex("plaincert", plaincert))
        except ValueError as e:
            raise InvalidResponseError(f"Host certificate is malformed: {e}") from e

    def _send_client_challenge(self, host: HostRecord, session: PairingSession) -> None:
        logger.info("Start pairing stage #2")
        session.state = PairingState.CHALLENGE_SENT
        encrypted = aes_encrypt(session.key, session.client_challenge)
        doc = self._pair_request(host, https=False, clientchallenge=encrypted.hex())

        try:
            response = aes_decrypt(
                session.key, _unhex("challengeresponse", doc.require("challengeresponse"))
            )
        except ValueError as e:
            raise InvalidResponseError("Challenge response is not block aligned") from e
        hash_length = session.hash_family.length
        if len(response) < hash_length + Challenge.LENGTH:
            raise InvalidResponseError("Challenge response is too short")
        session.server_response = response[:hash_length]
        session.server_challenge = Challenge(response[hash_length:hash_length + Challenge.LENGTH])

    def _send_challenge_response(self, host: HostRecord, session: PairingSession) -> None:
        logger.info("Start pairing stage #3")
        session.state = PairingState.CLIENT_CHALLENGE_RESP_SENT
        response_hash = session.hash_family.digest(
            session.server_challenge + self._identity.cert_signature + session.client_secret
        )
        doc = self._pair_request(
            host,
            https=False,
            serverchallengeresp=aes_encrypt(session.key, response_hash).hex(),
        )

        secret_response = _unhex("pairingsecret", doc.require("pairingsecret"))
        if len(secret_response) < Secret.LENGTH + Signature.LENGTH:
            raise InvalidResponseError("Pairing secret is too short")
        session.server_secret = Secret(secret_response[:Secret.LENGTH])
        session.server_signature = Signature(
            secret_response[Secret.LENGTH:Secret.LENGTH + Signature.LENGTH]
        )

        if not verify_signature(session.server_cert, session.server_secret, session.server_signature):
            raise PairingFailedError("MITM attack detected")

        expected = session.hash_family.digest(
            session.client_challenge + session.server_cert.signature + session.server_secret
        )
        if not secrets.compare_digest(expected, session.server_response):
            raise PairingFailedError("Incorrect PIN")

    def _send_pairing_secret(self, host: HostRecord, session: PairingSession) -> None:
        logger.info("Start pairing stage #4")
        session.state = PairingState.CLIENT_PAIRING_SECRET_SENT
        pairing_secret = session.client_secret + self._identity.sign(session.client_secret)
        self._pair_request(host, https=False, clientpairingsecret=pairing_secret.hex())

    def _send_pair_challenge(self, host: HostRecord, session: PairingSession) -> None:
        logger.info("Start pairing stage #5")
        session.state = PairingState.PAIR_CHALLENGE_SENT
        self._pair_request(host, https=True, phrase="pairchallenge")
        session.state = PairingState.PAIRED
