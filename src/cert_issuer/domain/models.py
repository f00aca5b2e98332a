"""
Domain models — immutable value objects for certificate issuance.

These are pure data with no cryptographic behavior. They describe WHAT is
to be issued (CertificateTemplate) and WHAT an issued certificate says
(CertificateDetails), independent of the library objects that carry the
actual key and signature material.

All models are frozen dataclasses (immutable), so they can be shared
across threads without locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique
from ipaddress import IPv4Address, IPv6Address

type IPAddress = IPv4Address | IPv6Address


@unique
class CipherKind(Enum):
    """
    Password-based encryption scheme for private key PEM containers.

    BEST_AVAILABLE writes a PKCS#8 "ENCRYPTED PRIVATE KEY" block
    (PBES2 with AES-256-CBC). AES_256_CBC writes the traditional OpenSSL
    "RSA PRIVATE KEY" block with Proc-Type/DEK-Info headers, for readers
    that only understand that format. Both are produced by the library.
    """

    BEST_AVAILABLE = "best-available"
    AES_256_CBC = "AES-256-CBC"

    @property
    def is_traditional_pem(self) -> bool:
        return self is CipherKind.AES_256_CBC


@unique
class IssuanceMode(Enum):
    """The closed set of ways a certificate gets signed."""

    SELF_SIGNED = "self-signed"
    FOR_PUBLIC_KEY = "for-public-key"
    FOR_CSR = "for-csr"


@dataclass(frozen=True, slots=True)
class CertificateTemplate:
    """
    The to-be-signed attributes of a certificate.

    Built by `cert_issuer.template.build_template`, which enforces:
      - common_name is non-empty
      - not_after is strictly after not_before
      - every identifier sits in exactly one SAN slot (DNS or IP)

    Both datetimes are timezone-aware UTC. The serial number is not part of
    the template: it is drawn at signing time, so one template can be
    issued more than once.
    """

    organization: str
    common_name: str
    not_before: datetime
    not_after: datetime
    is_ca: bool = False
    dns_names: tuple[str, ...] = ()
    ip_addresses: tuple[IPAddress, ...] = ()

    @property
    def has_sans(self) -> bool:
        return bool(self.dns_names or self.ip_addresses)


@dataclass(frozen=True, slots=True)
class CertificateDetails:
    """
    Structural view of an issued certificate.

    Two certificates are considered equal when their details are equal:
    same subject, issuer, validity, SAN set, serial, CA flag, public key
    and raw signature bytes.
    """

    organization: str | None
    common_name: str | None
    issuer_organization: str | None
    issuer_common_name: str | None
    not_before: datetime
    not_after: datetime
    serial_number: int
    is_ca: bool
    dns_names: frozenset[str] = frozenset()
    ip_addresses: frozenset[IPAddress] = frozenset()
    public_key_der: bytes = field(default=b"", repr=False)
    signature: bytes = field(default=b"", repr=False)
