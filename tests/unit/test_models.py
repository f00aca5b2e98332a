"""
Unit tests for domain models — value objects.

Verifies frozen dataclass behavior, enum properties
and computed properties.
"""

from __future__ import annotations

from datetime import UTC, datetime
from ipaddress import IPv4Address

import pytest

from cert_issuer.domain.models import (
    CertificateDetails,
    CertificateTemplate,
    CipherKind,
    IssuanceMode,
)

START = datetime(2026, 1, 1, tzinfo=UTC)
END = datetime(2027, 1, 1, tzinfo=UTC)


def _template(**overrides) -> CertificateTemplate:
    params = {
        "organization": "Acme",
        "common_name": "example.org",
        "not_before": START,
        "not_after": END,
    }
    params.update(overrides)
    return CertificateTemplate(**params)


class TestCipherKind:
    """Verify the key encryption schemes."""

    @pytest.mark.parametrize(
        ("cipher", "traditional"),
        [
            (CipherKind.BEST_AVAILABLE, False),
            (CipherKind.AES_256_CBC, True),
        ],
    )
    def test_traditional_pem(self, cipher: CipherKind, traditional: bool) -> None:
        assert cipher.is_traditional_pem is traditional

    def test_traditional_value_is_dek_info_name(self) -> None:
        """
        GIVEN the traditional cipher kind
        WHEN its value is read
        THEN it is the OpenSSL DEK-Info algorithm name.
        """
        assert CipherKind("AES-256-CBC") is CipherKind.AES_256_CBC

    def test_closed_set(self) -> None:
        assert {cipher.value for cipher in CipherKind} == {"best-available", "AES-256-CBC"}


class TestIssuanceMode:
    def test_closed_set(self) -> None:
        assert {mode.value for mode in IssuanceMode} == {"self-signed", "for-public-key", "for-csr"}


class TestCertificateTemplate:
    """Verify CertificateTemplate value object behavior."""

    def test_defaults(self) -> None:
        """
        GIVEN a template with only required fields
        WHEN accessed
        THEN it is not a CA and carries no SAN entries.
        """
        template = _template()
        assert not template.is_ca
        assert template.dns_names == ()
        assert template.ip_addresses == ()
        assert not template.has_sans

    def test_has_sans(self) -> None:
        assert _template(dns_names=("example.org",)).has_sans
        assert _template(ip_addresses=(IPv4Address("127.0.0.1"),)).has_sans

    def test_frozen_prevents_mutation(self) -> None:
        template = _template()
        with pytest.raises(AttributeError):
            template.common_name = "other"  # type: ignore[misc]

    def test_has_no_serial_number(self) -> None:
        """
        GIVEN a template
        WHEN its fields are listed
        THEN there is no serial number; one is drawn per signing.
        """
        assert not hasattr(_template(), "serial_number")


class TestCertificateDetails:
    def test_equality_is_by_value(self) -> None:
        def details() -> CertificateDetails:
            return CertificateDetails(
                organization="Acme",
                common_name="example.org",
                issuer_organization="Acme",
                issuer_common_name="example.org",
                not_before=START,
                not_after=END,
                serial_number=1,
                is_ca=False,
                dns_names=frozenset({"example.org"}),
            )

        assert details() == details()
        assert hash(details()) == hash(details())
