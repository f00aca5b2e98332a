"""
KeyPair — RSA key generation and PEM (de)serialization.

Uses:
  - cryptography (PyCA): RSA generation, PEM loading and writing
    (including the encrypted containers), hashing
  - asn1crypto: PEM armor inspection, to tell the block type and the
    "Proc-Type: 4,ENCRYPTED" header apart before handing data to the loader

A KeyPair is never half-built: every constructor returns a Result, and
the Success track only ever carries a fully loaded, validated key.

Decrypting a password-protected key is fail-closed. The library decrypts
and parses the key with full RSA consistency validation, then a pairwise
sign/verify check proves the private and public halves belong together.
Every failure along the way is reported as the same DECRYPTION_ERROR.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from asn1crypto import pem
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.padding import PKCS1v15
from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from cert_issuer.domain.models import CipherKind

log = structlog.get_logger()

PUBLIC_EXPONENT = 65537

_PKCS1_LABEL = "RSA PRIVATE KEY"
_PKCS8_LABEL = "PRIVATE KEY"
_PKCS8_ENCRYPTED_LABEL = "ENCRYPTED PRIVATE KEY"
_PAIRWISE_CHALLENGE = b"cert-issuer pairwise consistency check"


# ─────────────────────── PEM inspection ───────────────────────


def _unarmor(data: bytes) -> tuple[str, dict[str, str]]:
    """Return the PEM label and headers of the first block. Raises ValueError if not PEM."""
    if not isinstance(data, bytes) or not pem.detect(data):
        raise ValueError("input is not a PEM container")
    label, headers, _ = pem.unarmor(data)
    return label, dict(headers)


def _is_encrypted(label: str, headers: dict[str, str]) -> bool:
    if label == _PKCS8_ENCRYPTED_LABEL:
        return True
    return headers.get("Proc-Type", "").replace(" ", "") == "4,ENCRYPTED"


def _private_format(cipher: CipherKind) -> serialization.PrivateFormat:
    # TraditionalOpenSSL with a password is the DEK-Info AES-256-CBC container
    if cipher.is_traditional_pem:
        return serialization.PrivateFormat.TraditionalOpenSSL
    return serialization.PrivateFormat.PKCS8


# ─────────────────────── KeyPair ───────────────────────


@dataclass(frozen=True, slots=True, eq=False)
class KeyPair:
    """
    An RSA private key and its derived public key. Immutable.

    Construct through `generate`, `decode_plain`, `decode_encrypted` or
    `from_private_key` — never directly with unchecked key material.
    """

    _private_key: rsa.RSAPrivateKey = field(repr=False)

    # ── construction ──

    @staticmethod
    def generate(bits: int) -> Result[KeyPair]:
        """
        Generate a fresh RSA key pair with the given modulus size.

        Returns Result.failure(KEY_GENERATION_ERROR, ...) for an invalid
        size or a failing primitive. Callers should not retry.
        """
        return (
            Result.from_computation(
                lambda: rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=bits),
                ErrorCode.KEY_GENERATION_ERROR,
                f"Failed to generate a {bits}-bit RSA key",
            )
            .map(KeyPair)
            .peek(lambda key: log.info("keypair.generated", bits=bits, fingerprint=key.fingerprint()))
        )

    @staticmethod
    def from_private_key(private_key: object) -> Result[KeyPair]:
        """Wrap an already-loaded private key object. Only RSA keys are accepted."""
        if not isinstance(private_key, rsa.RSAPrivateKey):
            return ResultFailures.validation_error(
                f"Expected an RSA private key, got {type(private_key).__name__}"
            )
        return Result.success(KeyPair(private_key))

    @staticmethod
    def decode_plain(data: bytes) -> Result[KeyPair]:
        """
        Load an unencrypted PEM private key (PKCS#1 or PKCS#8).

        Returns DECODE_ERROR for malformed input, for an encrypted container
        (use `decode_encrypted`), and for keys that are not RSA.
        """
        try:
            label, headers = _unarmor(data)
        except (TypeError, ValueError) as e:
            return ResultFailures.decode_error("Malformed private key PEM", e)

        if _is_encrypted(label, headers):
            return ResultFailures.decode_error("Private key is encrypted; a password is required")
        if label not in (_PKCS1_LABEL, _PKCS8_LABEL):
            return ResultFailures.decode_error(f"Unexpected PEM block {label!r}, expected a private key")

        return (
            Result.from_computation(
                lambda: serialization.load_pem_private_key(data, password=None),
                ErrorCode.DECODE_ERROR,
                "Malformed private key PEM",
            )
            .flat_map(KeyPair.from_private_key)
            .map_failure(_as_decode_failure)
        )

    @staticmethod
    def decode_encrypted(data: bytes, password: bytes) -> Result[KeyPair]:
        """
        Load a password-protected PEM private key.

        Accepts both PKCS#8 "ENCRYPTED PRIVATE KEY" and legacy DEK-Info
        containers. Any failure (wrong password, corrupted ciphertext,
        unencrypted input, inconsistent key material) returns the same
        DECRYPTION_ERROR with no attached cause.
        """
        try:
            label, headers = _unarmor(data)
        except (TypeError, ValueError):
            return ResultFailures.decryption_error()
        if not _is_encrypted(label, headers) or not password:
            return ResultFailures.decryption_error()

        try:
            private_key = serialization.load_pem_private_key(data, password=password)
        except Exception:
            log.debug("keypair.decrypt_failed")
            return ResultFailures.decryption_error()

        if not isinstance(private_key, rsa.RSAPrivateKey) or not _pairwise_consistent(private_key):
            log.debug("keypair.decrypt_failed")
            return ResultFailures.decryption_error()
        return Result.success(KeyPair(private_key))

    # ── serialization ──

    def encode_plain(self) -> bytes:
        """Unencrypted PKCS#1 PEM ("RSA PRIVATE KEY")."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def encode_encrypted(
        self,
        password: bytes,
        cipher: CipherKind = CipherKind.BEST_AVAILABLE,
    ) -> Result[bytes]:
        """
        Password-encrypted PEM. The password is used once and not kept.

        Returns VALIDATION_ERROR for an empty or non-bytes password.
        """
        if not isinstance(password, bytes) or not password:
            return ResultFailures.validation_error("Password must be non-empty bytes")

        return Result.from_computation(
            lambda: self._private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=_private_format(cipher),
                encryption_algorithm=serialization.BestAvailableEncryption(password),
            ),
            ErrorCode.UNKNOWN_ERROR,
            f"Failed to encrypt private key with {cipher.value}",
        )

    # ── public half ──

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        return self._private_key

    @property
    def bits(self) -> int:
        return self._private_key.key_size

    def public_key(self) -> rsa.RSAPublicKey:
        return self._private_key.public_key()

    def public_key_der(self) -> bytes:
        return self.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def public_key_pem(self) -> bytes:
        return self.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def fingerprint(self) -> str:
        """SHA-256 over the DER SubjectPublicKeyInfo, lowercase hex."""
        return public_key_fingerprint(self.public_key())

    def matches(self, public_key: object) -> bool:
        """True when `public_key` is this pair's public half."""
        if not isinstance(public_key, rsa.RSAPublicKey):
            return False
        return public_key.public_numbers() == self.public_key().public_numbers()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self._private_key.private_numbers() == other._private_key.private_numbers()

    def __hash__(self) -> int:
        return hash(self.fingerprint())


def public_key_fingerprint(public_key: rsa.RSAPublicKey) -> str:
    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA256())
    digest.update(der)
    return digest.finalize().hex()


def _pairwise_consistent(private_key: rsa.RSAPrivateKey) -> bool:
    signature = private_key.sign(_PAIRWISE_CHALLENGE, PKCS1v15(), hashes.SHA256())
    try:
        private_key.public_key().verify(signature, _PAIRWISE_CHALLENGE, PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def _as_decode_failure(error: FailureDescription) -> FailureDescription:
    """Re-label a non-RSA rejection from `from_private_key` as a decode failure."""
    if error.code is ErrorCode.DECODE_ERROR:
        return error
    return FailureDescription.create(ErrorCode.DECODE_ERROR, error.message, error.exception)
