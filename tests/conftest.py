"""Pytest configuration and shared fixtures for Stream Booth tests

Provides a recording fake transport and a simulated GameStream host that
implements the host side of the pairing handshake.
"""

import datetime
import os
import tempfile
from dataclasses import dataclass
from urllib.parse import urlsplit
from xml.sax.saxutils import escape

os.environ.setdefault("STREAMBOOTH_CONFIG_DIR", tempfile.mkdtemp(prefix="streambooth-"))

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from gamestream.errors import HostIOError
from gamestream.models import HostRecord
from security.crypto import (
    Salt,
    aes_decrypt,
    aes_encrypt,
    derive_pin_key,
    load_certificate,
    select_pairing_hash,
    sign_data,
    verify_signature,
)
from security.identity import ClientIdentity


def xml_doc(status_code: int = 200, status_message: str = "", **fields) -> bytes:
    """Build a host response document."""
    body = "".join(f"<{k}>{escape(str(v))}</{k}>" for k, v in fields.items())
    return (
        f'<?xml version="1.0" encoding="utf-8"?>'
        f'<root status_code="{status_code}" status_message="{escape(status_message)}">'
        f"{body}</root>"
    ).encode("utf-8")


SERVERINFO_DEFAULTS = {
    "hostname": "gaming-pc",
    "appversion": "7.1.431.0",
    "GfeVersion": "3.27.0.112",
    "GsVersion": "6.2.0",
    "HttpsPort": "47984",
    "mac": "00:11:22:33:44:55",
    "ServerCodecModeSupport": "259",
    "PairStatus": "0",
    "currentgame": "0",
    "state": "SUNSHINE_SERVER_FREE",
    "gputype": "GeForce RTX 3080",
}


def serverinfo_doc(**overrides) -> bytes:
    fields = {**SERVERINFO_DEFAULTS, **overrides}
    return xml_doc(**{k: v for k, v in fields.items() if v is not None})


@dataclass
class Call:
    scheme: str
    path: str
    params: dict
    timeout: object


class FakeTransport:
    """Transport double: answers from per-path routes and records every call."""

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.routes: dict = {}

    def route(self, path: str, response) -> None:
        """``response`` is bytes, an exception, or fn(scheme, params) returning either."""
        self.routes[path] = response

    def get(self, url: str, params: dict, timeout) -> bytes:
        parts = urlsplit(url)
        path = parts.path.lstrip("/")
        self.calls.append(Call(parts.scheme, path, dict(params), timeout))
        response = self.routes.get(path)
        if response is None:
            raise HostIOError(f"No route for {path}")
        if callable(response):
            response = response(parts.scheme, params)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.calls]

    def calls_to(self, path: str) -> list[Call]:
        return [c for c in self.calls if c.path == path]


def _self_signed(common_name: str) -> tuple[rsa.RSAPrivateKey, x509.Certificate]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return key, cert


PAIR_STAGES = (
    "getservercert",
    "clientchallenge",
    "serverchallengeresp",
    "clientpairingsecret",
    "pairchallenge",
)


class SimulatedHost:
    """Host side of the pairing handshake, driven through FakeTransport."""

    def __init__(self, key, cert, pin: str, major_version: int = 7) -> None:
        self.key = key
        self.cert = cert
        self.pin = pin
        self.hash = select_pairing_hash(major_version)
        self.fail_at: str | None = None
        self.failure = None
        self.forge_signature = False
        self.client_verified = None
        self.unpaired = 0

    @staticmethod
    def stage_of(params: dict) -> str:
        if "phrase" in params:
            return params["phrase"]
        for stage in PAIR_STAGES[1:4]:
            if stage in params:
                return stage
        raise AssertionError(f"Unexpected pair request {params}")

    def install(self, transport: FakeTransport) -> None:
        transport.route("pair", self.handle)
        transport.route("unpair", self.handle_unpair)

    def handle_unpair(self, scheme, params):
        self.unpaired += 1
        return xml_doc()

    def handle(self, scheme, params):
        stage = self.stage_of(params)
        if stage == self.fail_at:
            return self.failure
        return getattr(self, f"_{stage}")(params)

    def _getservercert(self, params):
        self.client_cert = load_certificate(bytes.fromhex(params["clientcert"]))
        self.aes_key = derive_pin_key(self.hash, Salt(bytes.fromhex(params["salt"])), self.pin)
        pem = self.cert.public_bytes(serialization.Encoding.PEM)
        return xml_doc(paired=1, plaincert=pem.hex())

    def _clientchallenge(self, params):
        client_challenge = aes_decrypt(self.aes_key, bytes.fromhex(params["clientchallenge"]))[:16]
        self.server_secret = os.urandom(16)
        self.server_challenge = os.urandom(16)
        response = self.hash.digest(client_challenge + self.cert.signature + self.server_secret)
        encrypted = aes_encrypt(self.aes_key, response + self.server_challenge)
        return xml_doc(paired=1, challengeresponse=encrypted.hex())

    def _serverchallengeresp(self, params):
        decrypted = aes_decrypt(self.aes_key, bytes.fromhex(params["serverchallengeresp"]))
        self.client_hash = decrypted[:self.hash.length]
        signature = bytearray(sign_data(self.key, self.server_secret))
        if self.forge_signature:
            signature[0] ^= 0xFF
        return xml_doc(paired=1, pairingsecret=(self.server_secret + bytes(signature)).hex())

    def _clientpairingsecret(self, params):
        data = bytes.fromhex(params["clientpairingsecret"])
        client_secret, signature = data[:16], data[16:]
        expected = self.hash.digest(self.server_challenge + self.client_cert.signature + client_secret)
        self.client_verified = (
            verify_signature(self.client_cert, client_secret, signature)
            and expected == self.client_hash
        )
        return xml_doc(paired=1 if self.client_verified else 0)

    def _pairchallenge(self, params):
        return xml_doc(paired=1)


@pytest.fixture(scope="session")
def identity(tmp_path_factory) -> ClientIdentity:
    """Client identity generated once per test session."""
    return ClientIdentity(tmp_path_factory.mktemp("identity"))


@pytest.fixture(scope="session")
def host_keypair():
    return _self_signed("NVIDIA GameStream Server")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def host() -> HostRecord:
    """A discovered, unpaired, idle generation 7 host."""
    return HostRecord(
        address="192.168.1.20",
        https_port=47984,
        app_version="7.1.431.0",
        codec_mode_support=259,
        hostname="gaming-pc",
    )


@pytest.fixture
def simulated_host(host_keypair, transport) -> SimulatedHost:
    key, cert = host_keypair
    sim = SimulatedHost(key, cert, pin="1234", major_version=7)
    sim.install(transport)
    return sim
