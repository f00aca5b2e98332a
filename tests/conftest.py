"""
Shared test fixtures for the cert-issuer test suite.

RSA key generation is the slow part of every test here, so keys are
generated once per session and shared; KeyPair is immutable, so sharing
is safe. Issuers get a seeded random source and a frozen clock so serial
numbers and validity windows are reproducible.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from railway import ResultAssertions

from cert_issuer.adapters.randomness import SeededRandomSource
from cert_issuer.certificate import Certificate
from cert_issuer.issuer import CertificateIssuer
from cert_issuer.keys import KeyPair

FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
ONE_YEAR = timedelta(days=365)


@pytest.fixture(scope="session")
def ca_key() -> KeyPair:
    """A 2048-bit key pair used as the signing identity."""
    return ResultAssertions.assert_success(KeyPair.generate(2048))


@pytest.fixture(scope="session")
def leaf_key() -> KeyPair:
    """A second, unrelated 2048-bit key pair used as the subject of issued certificates."""
    return ResultAssertions.assert_success(KeyPair.generate(2048))


@pytest.fixture()
def issuer() -> CertificateIssuer:
    """Issuer with a deterministic serial source and a frozen clock."""
    return CertificateIssuer(random_source=SeededRandomSource(1234), clock=lambda: FIXED_NOW)


@pytest.fixture()
def ca_certificate(ca_key: KeyPair, issuer: CertificateIssuer) -> Certificate:
    """A self-signed CA certificate for `ca_key`, valid for one year from FIXED_NOW."""
    return ResultAssertions.assert_success(
        issuer.issue(ca_key, "Acme CA", "ca.example.org", FIXED_NOW + ONE_YEAR, is_ca=True)
    )


@pytest.fixture()
def fixed_now() -> datetime:
    """The frozen clock value used by the `issuer` fixture."""
    return FIXED_NOW
