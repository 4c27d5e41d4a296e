"""
Identity Service for the client's long-term pairing certificate.
"""

import datetime
import logging
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from config import CONFIG_DIR, UNIQUE_ID
from security.crypto import Signature, sign_data

logger = logging.getLogger(__name__)

CERT_COMMON_NAME = "NVIDIA GameStream Client"
CERT_VALIDITY_DAYS = 365 * 20
KEY_SIZE_BITS = 2048


class ClientIdentity:
    """Manages the client's RSA key and self-signed certificate."""

    def __init__(self, config_dir: Path = CONFIG_DIR, unique_id: str = UNIQUE_ID):
        self.unique_id = unique_id
        self.key_path = Path(config_dir) / "client.key"
        self.cert_path = Path(config_dir) / "client.pem"
        self.private_key, self.certificate = self._load_or_generate()

        logger.info(f"Initialized ClientIdentity with unique id: {self.unique_id}")

    def _load_or_generate(self) -> tuple[rsa.RSAPrivateKey, x509.Certificate]:
        """Loads the existing key pair or creates a new one."""
        if self.key_path.exists() and self.cert_path.exists():
            try:
                private_key = serialization.load_pem_private_key(
                    self.key_path.read_bytes(),
                    password=None
                )
                certificate = x509.load_pem_x509_certificate(self.cert_path.read_bytes())
                return private_key, certificate
            except ValueError as e:
                logger.warning(f"Failed to load existing client certificate: {e}. Generating new one.")

        logger.info("No client certificate found, generating a new one")
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE_BITS)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, CERT_COMMON_NAME)])
        now = datetime.datetime.now(datetime.timezone.utc)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + datetime.timedelta(days=CERT_VALIDITY_DAYS))
            .sign(private_key, hashes.SHA256())
        )

        self.key_path.parent.mkdir(parents=True, exist_ok=True)
        self.key_path.write_bytes(private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ))
        self.key_path.chmod(0o600)
        self.cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
        return private_key, certificate

    @property
    def cert_pem(self) -> bytes:
        """The certificate as PEM bytes, as sent to hosts during pairing."""
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def cert_signature(self) -> bytes:
        """The signature block of our own certificate."""
        return self.certificate.signature

    def sign(self, data: bytes) -> Signature:
        """Sign data using the long-term client key."""
        return sign_data(self.private_key, data)
