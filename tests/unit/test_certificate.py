"""
Unit tests for Certificate — PEM round trip, parsed-form wrapping,
structural equality and signature checks.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from ipaddress import IPv4Address

import pytest
from cryptography import x509
from railway import ErrorCode, ResultAssertions

from cert_issuer.certificate import Certificate, subject_name
from cert_issuer.issuer import CertificateIssuer
from cert_issuer.keys import KeyPair


class TestDecode:
    def test_round_trip_is_equal(self, ca_certificate: Certificate) -> None:
        """
        GIVEN an issued certificate
        WHEN it is encoded to PEM and decoded again
        THEN the result equals the original.
        """
        decoded = ResultAssertions.assert_success(Certificate.decode(ca_certificate.encode()))
        assert decoded == ca_certificate
        assert decoded.details() == ca_certificate.details()
        assert decoded.encode() == ca_certificate.encode()

    def test_encode_is_certificate_block(self, ca_certificate: Certificate) -> None:
        assert ca_certificate.encode().startswith(b"-----BEGIN CERTIFICATE-----")

    @pytest.mark.parametrize("data", [b"", b"junk", b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"])
    def test_malformed_input_is_decode_error(self, data: bytes) -> None:
        ResultAssertions.assert_failure(Certificate.decode(data), ErrorCode.DECODE_ERROR)

    def test_other_block_type_is_decode_error(self, ca_key: KeyPair) -> None:
        result = Certificate.decode(ca_key.encode_plain())
        ResultAssertions.assert_failure(result, ErrorCode.DECODE_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "RSA PRIVATE KEY")

    def test_der_round_trip(self, ca_certificate: Certificate) -> None:
        decoded = ResultAssertions.assert_success(Certificate.decode_der(ca_certificate.der()))
        assert decoded == ca_certificate


class TestFromParsedForm:
    def test_wraps_parsed_certificate(self, ca_certificate: Certificate) -> None:
        """
        GIVEN the library object of an issued certificate (as a TLS peer would present it)
        WHEN from_parsed_form is called
        THEN the wrapper equals the original without any PEM re-parsing.
        """
        native = x509.load_der_x509_certificate(ca_certificate.der())
        rebuilt = ResultAssertions.assert_success(Certificate.from_parsed_form(native))
        assert rebuilt == ca_certificate
        assert rebuilt.parsed_form() is native

    def test_rejects_other_objects(self) -> None:
        ResultAssertions.assert_failure(Certificate.from_parsed_form("not a cert"), ErrorCode.DECODE_ERROR)


class TestDetails:
    def test_self_signed_ca_details(self, ca_certificate: Certificate) -> None:
        details = ca_certificate.details()
        assert details.organization == "Acme CA"
        assert details.common_name == "ca.example.org"
        assert details.issuer_common_name == "ca.example.org"
        assert details.issuer_organization == "Acme CA"
        assert details.is_ca
        assert details.dns_names == frozenset({"ca.example.org"})
        assert details.ip_addresses == frozenset()
        assert details.serial_number > 0

    def test_is_self_signed(self, ca_certificate: Certificate) -> None:
        assert ca_certificate.is_self_signed()
        assert ca_certificate.is_ca()

    def test_certificates_from_different_issuances_differ(
        self, ca_key: KeyPair, ca_certificate: Certificate, issuer: CertificateIssuer, fixed_now: datetime
    ) -> None:
        other = ResultAssertions.assert_success(
            issuer.issue(ca_key, "Acme CA", "ca.example.org", fixed_now + timedelta(days=365), is_ca=True)
        )
        assert other != ca_certificate
        assert other.serial_number != ca_certificate.serial_number

    def test_usable_in_sets(self, ca_certificate: Certificate) -> None:
        decoded = ResultAssertions.assert_success(Certificate.decode(ca_certificate.encode()))
        assert len({ca_certificate, decoded}) == 1


class TestVerification:
    def test_signature_verifies_with_own_key(self, ca_certificate: Certificate, ca_key: KeyPair) -> None:
        ResultAssertions.assert_success(ca_certificate.verify_signature(ca_key.public_key()))

    def test_signature_fails_with_other_key(self, ca_certificate: Certificate, leaf_key: KeyPair) -> None:
        ResultAssertions.assert_failure(
            ca_certificate.verify_signature(leaf_key.public_key()), ErrorCode.VALIDATION_ERROR
        )

    def test_tampered_certificate_fails_verification(self, ca_certificate: Certificate, ca_key: KeyPair) -> None:
        """
        GIVEN an issued certificate whose last signature byte is flipped
        WHEN the signature is verified against the signer key
        THEN verification fails.
        """
        der = bytearray(ca_certificate.der())
        der[-1] ^= 0x01
        tampered = ResultAssertions.assert_success(Certificate.decode_der(bytes(der)))
        ResultAssertions.assert_failure(tampered.verify_signature(ca_key.public_key()), ErrorCode.VALIDATION_ERROR)
        assert tampered != ca_certificate

    def test_verify_issued_by_self(self, ca_certificate: Certificate) -> None:
        ResultAssertions.assert_success(ca_certificate.verify_issued_by(ca_certificate))

    def test_verify_issued_by_rejects_name_mismatch(
        self, ca_certificate: Certificate, leaf_key: KeyPair, issuer: CertificateIssuer, fixed_now: datetime
    ) -> None:
        stranger = ResultAssertions.assert_success(
            issuer.issue(leaf_key, "Other", "other.example.org", fixed_now + timedelta(days=1), is_ca=True)
        )
        result = ca_certificate.verify_issued_by(stranger)
        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "issuer")


class TestNameHelpers:
    def test_empty_organization_is_left_out(self) -> None:
        name = subject_name("", "host.example")
        assert len(name) == 1
        assert name.rfc4514_string() == "CN=host.example"

    def test_ip_san_round_trips_through_certificate(
        self, ca_key: KeyPair, issuer: CertificateIssuer, fixed_now: datetime
    ) -> None:
        cert = ResultAssertions.assert_success(
            issuer.issue(ca_key, "Acme", "127.0.0.1", fixed_now + timedelta(days=1))
        )
        details = cert.details()
        assert details.ip_addresses == frozenset({IPv4Address("127.0.0.1")})
        assert details.dns_names == frozenset()
