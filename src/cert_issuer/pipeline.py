"""
Pipeline — provision (mint or rotate) this service's own TLS identity.

The pipeline connects stages via flat_map, forming a railway:

  load key (or generate + persist it)
    → load certificate (or issue a self-signed one + persist it)
      → re-issue when the certificate is close to expiry or was made for another key

Each stage returns Result[T]. Failures short-circuit automatically: a key
that fails to decode or decrypt stops the pipeline, it is never
overwritten with a fresh one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from railway.result import Result

from cert_issuer.adapters.pem_files import (
    load_certificate,
    load_key_pair,
    save_certificate,
    save_key_pair,
)
from cert_issuer.certificate import Certificate
from cert_issuer.config import IssuerSettings
from cert_issuer.domain.ports import PemStore
from cert_issuer.issuer import CertificateIssuer
from cert_issuer.keys import KeyPair
from cert_issuer.template import utc

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class Identity:
    """A key pair and the certificate currently in use for it."""

    key_pair: KeyPair
    certificate: Certificate
    issued: bool = False


def _load_or_create_key(settings: IssuerSettings, store: PemStore) -> Result[KeyPair]:
    storage = settings.storage
    password = storage.password_bytes()
    if store.exists(storage.key_path):
        return load_key_pair(store, storage.key_path, password)

    log.info("identity.generating_key", path=str(storage.key_path), bits=settings.key_bits)
    return KeyPair.generate(settings.key_bits).flat_map(
        lambda key: save_key_pair(store, storage.key_path, key, password, storage.cipher).map(lambda _: key)
    )


def _renewal_reason(
    key_pair: KeyPair,
    certificate: Certificate,
    settings: IssuerSettings,
    now: datetime,
) -> str | None:
    """Why the stored certificate must be replaced, or None if it is still good."""
    if not key_pair.matches(certificate.public_key()):
        return "key_mismatch"
    if certificate.parsed_form().not_valid_after_utc - settings.renew_before <= now:
        return "expiring"
    return None


def _issue_and_save(
    key_pair: KeyPair,
    settings: IssuerSettings,
    store: PemStore,
    issuer: CertificateIssuer,
    now: datetime,
) -> Result[Identity]:
    identity = settings.identity
    return (
        issuer.issue(
            key_pair,
            identity.organization,
            identity.subject,
            now + identity.validity,
            is_ca=identity.is_ca,
            extra_sans=identity.extra_sans,
        )
        .flat_map(
            lambda cert: save_certificate(store, settings.storage.certificate_path, cert).map(lambda _: cert)
        )
        .map(lambda cert: Identity(key_pair=key_pair, certificate=cert, issued=True))
    )


def _load_or_issue_certificate(
    key_pair: KeyPair,
    settings: IssuerSettings,
    store: PemStore,
    issuer: CertificateIssuer,
    now: datetime,
) -> Result[Identity]:
    path = settings.storage.certificate_path
    if not store.exists(path):
        return _issue_and_save(key_pair, settings, store, issuer, now)

    def check(certificate: Certificate) -> Result[Identity]:
        reason = _renewal_reason(key_pair, certificate, settings, now)
        if reason is None:
            return Result.success(Identity(key_pair=key_pair, certificate=certificate))
        log.info("identity.rotating", reason=reason, serial=hex(certificate.serial_number))
        return _issue_and_save(key_pair, settings, store, issuer, now)

    return load_certificate(store, path).flat_map(check)


def provision_identity(
    settings: IssuerSettings,
    store: PemStore,
    issuer: CertificateIssuer,
    now: datetime | None = None,
) -> Result[Identity]:
    """
    Make sure a usable key and self-signed certificate exist in storage.

    Returns Result[Identity]; `issued` is True when a certificate was
    minted during this call (first run or rotation).
    """
    moment = utc(now or datetime.now(UTC))
    return (
        _load_or_create_key(settings, store)
        .flat_map(lambda key: _load_or_issue_certificate(key, settings, store, issuer, moment))
        .peek(
            lambda identity: log.info(
                "identity.ready",
                issued=identity.issued,
                fingerprint=identity.key_pair.fingerprint(),
                not_after=identity.certificate.parsed_form().not_valid_after_utc.isoformat(),
            )
        )
    )
