"""
CertificateIssuer — the three signing paths over one signing routine.

  self_sign            subject == issuer, certificate key == signer key
  issue_for_public_key issuer = signer certificate subject, key supplied by caller
  issue_for_csr        CSR signature checked first, then as issue_for_public_key

Every path ends in `_assemble_and_sign`, which is the only place a
certificate is built and signed. The issuer holds no state besides its
collaborators (random source, hash algorithm, clock), so one instance can
serve concurrent callers.

Issuer identity is resolved by name: the issued certificate's issuer field
is the signer certificate's subject. Authority/Subject Key Identifier
extensions are added so relying parties can also link by key.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID
from railway import ErrorCode, ResultFailures
from railway.result import Result

from cert_issuer.adapters.randomness import SystemRandomSource
from cert_issuer.certificate import Certificate, san_extension, subject_name
from cert_issuer.csr import CertificateSigningRequest
from cert_issuer.domain.models import CertificateTemplate, IssuanceMode
from cert_issuer.domain.ports import RandomSource
from cert_issuer.keys import KeyPair
from cert_issuer.template import build_template, random_serial_number

log = structlog.get_logger()


def _key_usage(is_ca: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=True,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=is_ca,
        crl_sign=is_ca,
        encipher_only=False,
        decipher_only=False,
    )


class CertificateIssuer:
    """
    Issue certificates signed by a KeyPair.

    Collaborators are injected:
      - random_source: serial numbers, one per signed certificate (defaults to the OS CSPRNG)
      - hash_algorithm: signature digest (defaults to SHA-256)
      - clock: start of the validity window (defaults to now, UTC)
    """

    def __init__(
        self,
        random_source: RandomSource | None = None,
        hash_algorithm: hashes.HashAlgorithm | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._random_source = random_source or SystemRandomSource()
        self._hash_algorithm = hash_algorithm or hashes.SHA256()
        self._clock = clock or (lambda: datetime.now(UTC))

    # ─────────────────────── Templates ───────────────────────

    def template(
        self,
        organization: str,
        subject: str,
        valid_until: datetime,
        is_ca: bool = False,
        extra_sans: Iterable[str] = (),
    ) -> Result[CertificateTemplate]:
        """Build a template with this issuer's clock."""
        return build_template(organization, subject, valid_until, is_ca, extra_sans, now=self._clock())

    # ─────────────────────── Issuance modes ───────────────────────

    def self_sign(self, signer: KeyPair, template: CertificateTemplate) -> Result[Certificate]:
        """Issue a serverAuth certificate for the signer's own key, with subject == issuer."""
        name = subject_name(template.organization, template.common_name)
        return self._assemble_and_sign(
            IssuanceMode.SELF_SIGNED,
            signer,
            issuer_name=name,
            template=template,
            subject_public_key=signer.public_key(),
            key_purpose=ExtendedKeyUsageOID.SERVER_AUTH,
        )

    def issue_for_public_key(
        self,
        signer: KeyPair,
        signer_certificate: Certificate,
        template: CertificateTemplate,
        subject_public_key: object,
        key_purpose: x509.ObjectIdentifier = ExtendedKeyUsageOID.CLIENT_AUTH,
    ) -> Result[Certificate]:
        """
        Issue a certificate for someone else's public key under `signer_certificate`.

        `key_purpose` is the single ExtendedKeyUsage entry; clientAuth unless
        the caller asks for something else.

        Returns ISSUANCE_ERROR when the signer certificate cannot act as the
        issuer identity (empty subject, not a CA, or not the signer's key)
        or when the subject key is not RSA.
        """
        return self._issue_under(
            IssuanceMode.FOR_PUBLIC_KEY,
            signer,
            signer_certificate,
            template,
            subject_public_key,
            key_purpose,
        )

    def issue_for_csr(
        self,
        signer: KeyPair,
        signer_certificate: Certificate,
        csr: CertificateSigningRequest,
        valid_until: datetime,
    ) -> Result[Certificate]:
        """
        Issue a leaf (non-CA) clientAuth certificate for a signing request.

        The CSR signature is verified before anything else; a bad signature
        or a missing common name is INVALID_CSR_ERROR. Organization, common
        name and requested SAN entries are taken from the CSR. A common name
        that is neither a hostname nor an IP literal stays out of the SANs.
        """
        return (
            _verified_csr(csr)
            .flat_map(
                lambda verified: self.template(
                    verified.organization or "",
                    verified.common_name or "",
                    valid_until,
                    is_ca=False,
                    extra_sans=verified.requested_sans(),
                )
            )
            .flat_map(
                lambda template: self._issue_under(
                    IssuanceMode.FOR_CSR,
                    signer,
                    signer_certificate,
                    template,
                    csr.public_key(),
                    ExtendedKeyUsageOID.CLIENT_AUTH,
                )
            )
        )

    def issue(
        self,
        signer: KeyPair,
        organization: str,
        subject: str,
        valid_until: datetime,
        is_ca: bool = False,
        extra_sans: Iterable[str] = (),
        issuer: Certificate | None = None,
    ) -> Result[Certificate]:
        """
        TLS server certificate for the signer's own key in one call.

        Self-signed when `issuer` is None; otherwise issued under `issuer`
        (which must belong to `signer`). Either way the certificate carries
        serverAuth.
        """
        template = self.template(organization, subject, valid_until, is_ca, extra_sans)
        if issuer is None:
            return template.flat_map(lambda t: self.self_sign(signer, t))
        return template.flat_map(
            lambda t: self.issue_for_public_key(
                signer, issuer, t, signer.public_key(), ExtendedKeyUsageOID.SERVER_AUTH
            )
        )

    # ─────────────────────── Shared signing core ───────────────────────

    def _issue_under(
        self,
        mode: IssuanceMode,
        signer: KeyPair,
        signer_certificate: Certificate,
        template: CertificateTemplate,
        subject_public_key: object,
        key_purpose: x509.ObjectIdentifier,
    ) -> Result[Certificate]:
        if not isinstance(subject_public_key, rsa.RSAPublicKey):
            return ResultFailures.issuance_error(
                f"Subject public key must be RSA, got {type(subject_public_key).__name__}"
            )
        if template.not_after > signer_certificate.parsed_form().not_valid_after_utc:
            log.warning(
                "certificate.outlives_issuer",
                common_name=template.common_name,
                not_after=template.not_after.isoformat(),
                issuer_not_after=signer_certificate.parsed_form().not_valid_after_utc.isoformat(),
            )
        return _resolve_issuer_name(signer, signer_certificate).flat_map(
            lambda issuer_name: self._assemble_and_sign(
                mode,
                signer,
                issuer_name=issuer_name,
                template=template,
                subject_public_key=subject_public_key,
                key_purpose=key_purpose,
            )
        )

    def _assemble_and_sign(
        self,
        mode: IssuanceMode,
        signer: KeyPair,
        issuer_name: x509.Name,
        template: CertificateTemplate,
        subject_public_key: rsa.RSAPublicKey,
        key_purpose: x509.ObjectIdentifier,
    ) -> Result[Certificate]:
        """
        Build the to-be-signed structure from the template and sign it with `signer`.

        Every call draws a fresh serial number, so signing the same template
        twice yields two certificates with distinct serials.
        """

        def sign() -> x509.Certificate:
            builder = (
                x509.CertificateBuilder()
                .subject_name(subject_name(template.organization, template.common_name))
                .issuer_name(issuer_name)
                .public_key(subject_public_key)
                .serial_number(random_serial_number(self._random_source))
                .not_valid_before(template.not_before)
                .not_valid_after(template.not_after)
                .add_extension(x509.BasicConstraints(ca=template.is_ca, path_length=None), critical=True)
                .add_extension(_key_usage(template.is_ca), critical=True)
                .add_extension(x509.ExtendedKeyUsage([key_purpose]), critical=False)
                .add_extension(x509.SubjectKeyIdentifier.from_public_key(subject_public_key), critical=False)
                .add_extension(
                    x509.AuthorityKeyIdentifier.from_issuer_public_key(signer.public_key()),
                    critical=False,
                )
            )
            if template.has_sans:
                builder = builder.add_extension(
                    san_extension(template.dns_names, template.ip_addresses), critical=False
                )
            return builder.sign(signer.private_key, self._hash_algorithm)

        return (
            Result.from_computation(sign, ErrorCode.SIGNING_ERROR, "Failed to sign certificate")
            .map(Certificate)
            .peek(
                lambda cert: log.info(
                    "certificate.issued",
                    mode=mode.value,
                    common_name=template.common_name,
                    serial=hex(cert.serial_number),
                    is_ca=template.is_ca,
                    not_after=template.not_after.isoformat(),
                )
            )
        )


def _verified_csr(csr: CertificateSigningRequest) -> Result[CertificateSigningRequest]:
    """Check the CSR signature against its embedded key before trusting its content."""
    try:
        signature_valid = csr.is_signature_valid()
    except Exception as e:
        return ResultFailures.invalid_csr("Certificate request signature could not be checked", e)
    if not signature_valid:
        return ResultFailures.invalid_csr("Certificate request signature does not verify")
    if not csr.common_name:
        return ResultFailures.invalid_csr("Certificate request has no common name")
    return Result.success(csr)


def _resolve_issuer_name(signer: KeyPair, signer_certificate: Certificate) -> Result[x509.Name]:
    """The signer certificate's subject, once it is shown to be a usable issuer identity."""
    return (
        Result.success(signer_certificate)
        .ensure(
            lambda cert: len(cert.subject) > 0,
            ErrorCode.ISSUANCE_ERROR,
            "Signer certificate has an empty subject",
        )
        .ensure(lambda cert: cert.is_ca(), ErrorCode.ISSUANCE_ERROR, "Signer certificate is not a CA certificate")
        .ensure(
            lambda cert: signer.matches(cert.public_key()),
            ErrorCode.ISSUANCE_ERROR,
            "Signer key does not match the signer certificate",
        )
        .map(lambda cert: cert.subject)
    )
