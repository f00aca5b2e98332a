"""
Certificate — an issued X.509 certificate and its PEM round-trip.

The wrapped `cryptography.x509.Certificate` is the single source of truth:
the PEM/DER encodings and the structural CertificateDetails are both
derived from it, so decode(encode(c)) and from_parsed_form(c.parsed_form())
always compare equal to c.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from asn1crypto import pem
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.padding import PKCS1v15
from cryptography.x509.oid import NameOID
from railway import ErrorCode, ResultFailures
from railway.result import Result

from cert_issuer.domain.models import CertificateDetails, IPAddress

_CERTIFICATE_LABEL = "CERTIFICATE"


def name_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
    """First value of the given attribute in an X.509 Name, or None if absent."""
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


def subject_name(organization: str, common_name: str) -> x509.Name:
    """O=<organization>, CN=<common_name>. An empty organization is left out."""
    attributes = []
    if organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attributes)


def san_extension(dns_names: Iterable[str], ip_addresses: Iterable[IPAddress]) -> x509.SubjectAlternativeName:
    """DNS entries first, then IP entries."""
    general_names: list[x509.GeneralName] = [x509.DNSName(name) for name in dns_names]
    general_names.extend(x509.IPAddress(address) for address in ip_addresses)
    return x509.SubjectAlternativeName(general_names)


def _basic_constraints_ca(cert: x509.Certificate) -> bool:
    try:
        return bool(cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca)
    except x509.ExtensionNotFound:
        return False


def _subject_alt_names(cert: x509.Certificate) -> x509.SubjectAlternativeName | None:
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return None


@dataclass(frozen=True, slots=True, eq=False)
class Certificate:
    """
    An issued certificate. Immutable.

    Produced by CertificateIssuer, `decode` or `from_parsed_form`.
    Equality is structural (see CertificateDetails).
    """

    _native: x509.Certificate = field(repr=False)

    # ── construction ──

    @staticmethod
    def decode(data: bytes) -> Result[Certificate]:
        """
        Load a PEM "CERTIFICATE" block.

        Returns DECODE_ERROR for input that is not PEM, for any other PEM
        block type, and for a malformed certificate structure.
        """
        if not isinstance(data, bytes) or not pem.detect(data):
            return ResultFailures.decode_error("Input is not a PEM container")
        try:
            label, _, _ = pem.unarmor(data)
        except ValueError as e:
            return ResultFailures.decode_error("Malformed certificate PEM", e)
        if label != _CERTIFICATE_LABEL:
            return ResultFailures.decode_error(f"Unexpected PEM block {label!r}, expected a certificate")

        return Result.from_computation(
            lambda: x509.load_pem_x509_certificate(data),
            ErrorCode.DECODE_ERROR,
            "Malformed certificate PEM",
        ).map(Certificate)

    @staticmethod
    def decode_der(data: bytes) -> Result[Certificate]:
        return Result.from_computation(
            lambda: x509.load_der_x509_certificate(data),
            ErrorCode.DECODE_ERROR,
            "Malformed certificate DER",
        ).map(Certificate)

    @staticmethod
    def from_parsed_form(native: object) -> Result[Certificate]:
        """
        Wrap an already-parsed certificate, e.g. one presented by a TLS peer.

        No PEM re-parsing happens. Anything other than a
        `cryptography.x509.Certificate` is a DECODE_ERROR.
        """
        if not isinstance(native, x509.Certificate):
            return ResultFailures.decode_error(
                f"Expected a parsed X.509 certificate, got {type(native).__name__}"
            )
        return Result.success(Certificate(native))

    # ── encodings ──

    def parsed_form(self) -> x509.Certificate:
        return self._native

    def encode(self) -> bytes:
        """PEM "CERTIFICATE" block."""
        return self._native.public_bytes(serialization.Encoding.PEM)

    def der(self) -> bytes:
        return self._native.public_bytes(serialization.Encoding.DER)

    # ── inspection ──

    @property
    def subject(self) -> x509.Name:
        return self._native.subject

    @property
    def issuer(self) -> x509.Name:
        return self._native.issuer

    @property
    def serial_number(self) -> int:
        return self._native.serial_number

    def public_key(self) -> rsa.RSAPublicKey:
        return self._native.public_key()  # type: ignore[return-value]

    def is_ca(self) -> bool:
        return _basic_constraints_ca(self._native)

    def is_self_signed(self) -> bool:
        """Subject equals issuer and the signature verifies with the certificate's own key."""
        return self.subject == self.issuer and self.verify_signature(self.public_key()).is_success()

    def details(self) -> CertificateDetails:
        cert = self._native
        sans = _subject_alt_names(cert)
        dns_names = frozenset(sans.get_values_for_type(x509.DNSName)) if sans else frozenset()
        ip_addresses = frozenset(sans.get_values_for_type(x509.IPAddress)) if sans else frozenset()
        return CertificateDetails(
            organization=name_attribute(cert.subject, NameOID.ORGANIZATION_NAME),
            common_name=name_attribute(cert.subject, NameOID.COMMON_NAME),
            issuer_organization=name_attribute(cert.issuer, NameOID.ORGANIZATION_NAME),
            issuer_common_name=name_attribute(cert.issuer, NameOID.COMMON_NAME),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            serial_number=cert.serial_number,
            is_ca=_basic_constraints_ca(cert),
            dns_names=dns_names,
            ip_addresses=ip_addresses,
            public_key_der=cert.public_key().public_bytes(
                serialization.Encoding.DER,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            ),
            signature=cert.signature,
        )

    # ── verification ──

    def verify_signature(self, public_key: object) -> Result[Certificate]:
        """
        Check the certificate signature against `public_key`.

        Returns VALIDATION_ERROR when it does not verify. No chain, expiry
        or revocation checks are made.
        """
        if not isinstance(public_key, rsa.RSAPublicKey):
            return ResultFailures.validation_error("Signature verification requires an RSA public key")
        hash_algorithm = self._native.signature_hash_algorithm
        if hash_algorithm is None:
            return ResultFailures.validation_error("Certificate signature has no hash algorithm")
        try:
            public_key.verify(
                self._native.signature,
                self._native.tbs_certificate_bytes,
                PKCS1v15(),
                hash_algorithm,
            )
        except InvalidSignature:
            return ResultFailures.validation_error("Certificate signature does not verify")
        return Result.success(self)

    def verify_issued_by(self, issuer: Certificate) -> Result[Certificate]:
        """
        Check that `issuer` directly issued this certificate.

        Issuer matching is by subject name, then the signature is checked
        against the issuer's public key.
        """
        if self.issuer != issuer.subject:
            return ResultFailures.validation_error("Certificate issuer does not match the issuer's subject")
        return self.verify_signature(issuer.public_key())

    # ── value semantics ──

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Certificate):
            return NotImplemented
        return self.details() == other.details()

    def __hash__(self) -> int:
        return hash(self.details())
