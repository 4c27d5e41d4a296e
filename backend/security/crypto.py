"""
Security module: pairing key derivation, AES-128-ECB and RSA signatures.

The digest family used by the pairing handshake depends on the host
generation and is chosen once per handshake through ``select_pairing_hash``.
All handshake keys are ephemeral and never persisted.
"""

import logging
import os
from dataclasses import dataclass

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

# AES-128 block and key size
BLOCK_SIZE = 16
KEY_SIZE = 16
# RSA-2048 signature size
SIGNATURE_SIZE = 256


class FixedBytes(bytes):
    """bytes with a length checked at construction."""

    LENGTH = 0

    def __new__(cls, value: bytes = b""):
        if len(value) != cls.LENGTH:
            raise ValueError(
                f"{cls.__name__} must be {cls.LENGTH} bytes, got {len(value)}"
            )
        return super().__new__(cls, value)

    @classmethod
    def random(cls):
        return cls(os.urandom(cls.LENGTH))


class Salt(FixedBytes):
    LENGTH = 16


class AesKey(FixedBytes):
    LENGTH = KEY_SIZE


class Challenge(FixedBytes):
    LENGTH = 16


class Secret(FixedBytes):
    LENGTH = 16


class Signature(FixedBytes):
    LENGTH = SIGNATURE_SIZE


@dataclass(frozen=True)
class PairingHash:
    """Digest family used for one pairing handshake."""
    name: str
    algorithm: type
    length: int

    def digest(self, data: bytes) -> bytes:
        h = hashes.Hash(self.algorithm())
        h.update(data)
        return h.finalize()


SHA1_PAIRING = PairingHash("sha1", hashes.SHA1, 20)
SHA256_PAIRING = PairingHash("sha256", hashes.SHA256, 32)

# (minimum host major version, family), newest first
PAIRING_HASHES = (
    (7, SHA256_PAIRING),
    (0, SHA1_PAIRING),
)


def select_pairing_hash(major_version: int) -> PairingHash:
    """Return the digest family a host of this generation pairs with."""
    for min_version, family in PAIRING_HASHES:
        if major_version >= min_version:
            return family
    return SHA1_PAIRING


def derive_pin_key(hash_family: PairingHash, salt: Salt, pin: str) -> AesKey:
    """
    Derive the handshake AES key from the salted PIN.

    The key is the first 16 bytes of H(salt || pin).
    """
    return AesKey(hash_family.digest(bytes(salt) + pin.encode("utf-8"))[:KEY_SIZE])


def _pad_block(data: bytes) -> bytes:
    remainder = len(data) % BLOCK_SIZE
    if remainder:
        data += b"\x00" * (BLOCK_SIZE - remainder)
    return data


def aes_encrypt(key: AesKey, plaintext: bytes) -> bytes:
    """
    Encrypt with AES-128-ECB.

    Plaintext that is not block-aligned is zero padded.
    """
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(_pad_block(plaintext)) + encryptor.finalize()


def aes_decrypt(key: AesKey, ciphertext: bytes) -> bytes:
    """Decrypt AES-128-ECB. Ciphertext must be block-aligned."""
    if len(ciphertext) % BLOCK_SIZE:
        raise ValueError("Ciphertext is not a multiple of the AES block size")
    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


def sign_data(private_key: rsa.RSAPrivateKey, data: bytes) -> Signature:
    """Sign data with RSA PKCS#1 v1.5 over SHA-256."""
    return Signature(private_key.sign(data, padding.PKCS1v15(), hashes.SHA256()))


def verify_signature(
    certificate: x509.Certificate, data: bytes, signature: bytes
) -> bool:
    """Check an RSA PKCS#1 v1.5/SHA-256 signature against a certificate's key."""
    try:
        certificate.public_key().verify(
            signature, data, padding.PKCS1v15(), hashes.SHA256()
        )
    except (InvalidSignature, TypeError, ValueError) as e:
        logger.debug(f"Signature verification failed: {e!r}")
        return False
    return True


def load_certificate(pem: bytes) -> x509.Certificate:
    """Load a PEM certificate. Raises ValueError if it is malformed."""
    return x509.load_pem_x509_certificate(pem)
