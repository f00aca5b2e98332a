"""
Certificate signing requests — building them from a KeyPair and reading
them back for issuance.

A CSR binds a requested subject (organization + common name, optionally
extra SAN entries) to the requester's public key, and is signed with the
requester's private key. The issuer checks that signature before it
trusts anything else in the request.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from asn1crypto import pem
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from railway import ErrorCode, ResultFailures
from railway.result import Result

from cert_issuer.certificate import name_attribute, san_extension, subject_name
from cert_issuer.keys import KeyPair
from cert_issuer.template import MAX_COMMON_NAME_LENGTH, split_sans

log = structlog.get_logger()

_CSR_LABELS = ("CERTIFICATE REQUEST", "NEW CERTIFICATE REQUEST")


@dataclass(frozen=True, slots=True, eq=False)
class CertificateSigningRequest:
    """A parsed CSR. Immutable."""

    _native: x509.CertificateSigningRequest = field(repr=False)

    @staticmethod
    def decode(data: bytes) -> Result[CertificateSigningRequest]:
        """Load a PEM "CERTIFICATE REQUEST" block. DECODE_ERROR on anything else."""
        if not isinstance(data, bytes) or not pem.detect(data):
            return ResultFailures.decode_error("Input is not a PEM container")
        try:
            label, _, _ = pem.unarmor(data)
        except ValueError as e:
            return ResultFailures.decode_error("Malformed certificate request PEM", e)
        if label not in _CSR_LABELS:
            return ResultFailures.decode_error(f"Unexpected PEM block {label!r}, expected a certificate request")

        return Result.from_computation(
            lambda: x509.load_pem_x509_csr(data),
            ErrorCode.DECODE_ERROR,
            "Malformed certificate request PEM",
        ).map(CertificateSigningRequest)

    @staticmethod
    def from_parsed_form(native: object) -> Result[CertificateSigningRequest]:
        if not isinstance(native, x509.CertificateSigningRequest):
            return ResultFailures.decode_error(
                f"Expected a parsed certificate request, got {type(native).__name__}"
            )
        return Result.success(CertificateSigningRequest(native))

    def parsed_form(self) -> x509.CertificateSigningRequest:
        return self._native

    def encode(self) -> bytes:
        return self._native.public_bytes(serialization.Encoding.PEM)

    @property
    def organization(self) -> str | None:
        return name_attribute(self._native.subject, NameOID.ORGANIZATION_NAME)

    @property
    def common_name(self) -> str | None:
        return name_attribute(self._native.subject, NameOID.COMMON_NAME)

    def public_key(self) -> object:
        """The requester's key. Not necessarily RSA; the issuer checks."""
        return self._native.public_key()

    def is_signature_valid(self) -> bool:
        return self._native.is_signature_valid

    def requested_sans(self) -> tuple[str, ...]:
        """SAN entries requested in the CSR, as strings (DNS names first, then IPs)."""
        try:
            sans = self._native.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        except x509.ExtensionNotFound:
            return ()
        dns_names = sans.get_values_for_type(x509.DNSName)
        ip_addresses = [str(address) for address in sans.get_values_for_type(x509.IPAddress)]
        return (*dns_names, *ip_addresses)


class CSRBuilder:
    """
    Build signed certificate signing requests.

    Stateless apart from the signature hash, so one builder can be shared.
    """

    def __init__(self, hash_algorithm: hashes.HashAlgorithm | None = None) -> None:
        self._hash_algorithm = hash_algorithm or hashes.SHA256()

    def build(
        self,
        key_pair: KeyPair,
        organization: str,
        common_name: str,
        extra_sans: Iterable[str] = (),
    ) -> Result[CertificateSigningRequest]:
        """
        Create a CSR for `key_pair`'s public key, signed by its private key.

        Returns INVALID_TEMPLATE_ERROR for an empty or over-long common name
        or a bad SAN entry, SIGNING_ERROR if the signing primitive fails.
        """
        if not isinstance(common_name, str) or not common_name.strip():
            return ResultFailures.invalid_template("Requested common name must not be empty")
        if len(common_name.strip()) > MAX_COMMON_NAME_LENGTH:
            return ResultFailures.invalid_template(
                f"Requested common name exceeds {MAX_COMMON_NAME_LENGTH} characters"
            )

        return split_sans(extra_sans).flat_map(
            lambda sans: self._sign(key_pair.private_key, organization, common_name.strip(), sans)
        ).peek(
            lambda csr: log.info(
                "csr.built",
                common_name=csr.common_name,
                organization=csr.organization,
                fingerprint=key_pair.fingerprint(),
            )
        )

    def _sign(
        self,
        private_key: rsa.RSAPrivateKey,
        organization: str,
        common_name: str,
        sans: tuple[tuple[str, ...], tuple[object, ...]],
    ) -> Result[CertificateSigningRequest]:
        builder = x509.CertificateSigningRequestBuilder().subject_name(
            subject_name(organization, common_name)
        )
        dns_names, ip_addresses = sans
        if dns_names or ip_addresses:
            builder = builder.add_extension(san_extension(dns_names, ip_addresses), critical=False)

        return Result.from_computation(
            lambda: builder.sign(private_key, self._hash_algorithm),
            ErrorCode.SIGNING_ERROR,
            "Failed to sign certificate request",
        ).map(CertificateSigningRequest)
