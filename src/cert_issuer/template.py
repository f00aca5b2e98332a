"""
Certificate template construction — from high-level parameters to the
to-be-signed attribute set.

Identifier classification: every identifier (primary subject and extra
SAN entries) is parsed as an IP literal first; anything that does not
parse is a DNS name. An identifier therefore lands in exactly one SAN slot.

The primary subject is always the common name. It is also the first SAN
entry when it is an IP literal or a hostname; a subject such as a person's
name ("Jane Doe") stays in the common name only.

Serial numbers: 20 bytes from a RandomSource, shifted right by one bit.
That gives a positive integer of at most 159 bits, which always fits the
20-octet limit of RFC 5280. Uniqueness is not tracked; it rests on the
size of the space. A serial is drawn for every certificate signed, never
stored in the template.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from datetime import UTC, datetime

from railway import ResultFailures
from railway.result import Result

from cert_issuer.domain.models import CertificateTemplate, IPAddress
from cert_issuer.domain.ports import RandomSource

SERIAL_NUMBER_BYTES = 20
MAX_COMMON_NAME_LENGTH = 64


def utc(moment: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are read as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def random_serial_number(random_source: RandomSource) -> int:
    """Draw a positive serial number of at most 159 bits."""
    while True:
        serial = int.from_bytes(random_source.token_bytes(SERIAL_NUMBER_BYTES), "big") >> 1
        if serial > 0:
            return serial


def classify_identifier(identifier: str) -> IPAddress | str:
    """Return an IP address object for IP literals, the stripped string otherwise."""
    value = identifier.strip()
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return value


def is_dns_name(name: str) -> bool:
    """ASCII with no whitespace: the only form written into a DNS SAN entry."""
    return bool(name) and name.isascii() and not any(c.isspace() for c in name)


def _belongs_in_san(common_name: str) -> bool:
    match classify_identifier(common_name):
        case str() as name:
            return is_dns_name(name)
        case _:
            return True


def split_sans(identifiers: Iterable[str]) -> Result[tuple[tuple[str, ...], tuple[IPAddress, ...]]]:
    """
    Classify identifiers into (dns_names, ip_addresses).

    Duplicates are dropped, first occurrence wins. Empty entries and
    names that are not valid DNS names are rejected with INVALID_TEMPLATE_ERROR.
    """
    dns_names: list[str] = []
    ip_addresses: list[IPAddress] = []
    for identifier in identifiers:
        if not isinstance(identifier, str) or not identifier.strip():
            return ResultFailures.invalid_template(f"Invalid SAN entry: {identifier!r}")
        match classify_identifier(identifier):
            case str() as name:
                if not is_dns_name(name):
                    return ResultFailures.invalid_template(f"Invalid DNS name in SAN: {name!r}")
                if name.lower() not in (n.lower() for n in dns_names):
                    dns_names.append(name)
            case address:
                if address not in ip_addresses:
                    ip_addresses.append(address)
    return Result.success((tuple(dns_names), tuple(ip_addresses)))


def build_template(
    organization: str,
    subject: str,
    valid_until: datetime,
    is_ca: bool = False,
    extra_sans: Iterable[str] = (),
    *,
    now: datetime | None = None,
) -> Result[CertificateTemplate]:
    """
    Build the attribute set for a certificate about to be issued.

    The validity window starts at `now` (the current time unless injected)
    and ends at `valid_until`. `subject` becomes the common name and, when
    it is an IP literal or a hostname, the first SAN entry; `extra_sans`
    follow in order.

    Returns INVALID_TEMPLATE_ERROR when the subject is empty or too long,
    when `valid_until` is not strictly after the start, or for a bad entry
    in `extra_sans`.
    """
    if not isinstance(subject, str) or not subject.strip():
        return ResultFailures.invalid_template("Certificate subject must not be empty")
    if len(subject.strip()) > MAX_COMMON_NAME_LENGTH:
        return ResultFailures.invalid_template(
            f"Certificate subject exceeds {MAX_COMMON_NAME_LENGTH} characters; put it in extra_sans"
        )

    # X.509 time has second precision
    not_before = utc(now or datetime.now(UTC)).replace(microsecond=0)
    not_after = utc(valid_until).replace(microsecond=0)
    if not_after <= not_before:
        return ResultFailures.invalid_template(
            f"Validity end {not_after.isoformat()} is not after start {not_before.isoformat()}"
        )

    common_name = subject.strip()
    subject_sans = [common_name] if _belongs_in_san(common_name) else []
    return split_sans([*subject_sans, *extra_sans]).map(
        lambda sans: CertificateTemplate(
            organization=organization,
            common_name=common_name,
            not_before=not_before,
            not_after=not_after,
            is_ca=is_ca,
            dns_names=sans[0],
            ip_addresses=sans[1],
        )
    )
