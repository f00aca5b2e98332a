"""
Application entry point — wires dependencies and runs one command.

Composition root: creates the concrete adapters (file store, system random
source), the issuer, and hands them to the requested command.

Commands:
  provision   ensure the configured key + self-signed certificate exist, rotating when due
  request     write a CSR for the stored key
  sign        issue a certificate for a CSR file under the stored CA identity

Responsibilities:
  1. Parse command-line arguments
  2. Load and validate configuration from environment
  3. Configure structlog
  4. Create concrete adapters and the issuer
  5. Run the command; any Failure is logged and exits 1
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import structlog
from structlog.typing import Processor
from railway.failure import FailureDescription
from railway.result import Result

from cert_issuer import __version__
from cert_issuer.adapters.pem_files import FilePemStore, load_certificate, load_key_pair
from cert_issuer.adapters.randomness import SystemRandomSource
from cert_issuer.config import IssuerSettings
from cert_issuer.csr import CertificateSigningRequest, CSRBuilder
from cert_issuer.issuer import CertificateIssuer
from cert_issuer.pipeline import provision_identity


def configure_structlog(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog for structured logging.

    In production (json_logs=True): JSON lines to stdout (machine-readable).
    In development: colored, human-readable console output.
    """
    renderer: Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cert-issuer", description="Mint and rotate TLS identities.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("provision", help="Ensure the configured identity exists and is current")

    request = commands.add_parser("request", help="Write a CSR for the stored key")
    request.add_argument("--out", type=Path, required=True, help="CSR output path")
    request.add_argument("--organization", help="Requested organization (default: identity.organization)")
    request.add_argument("--common-name", help="Requested common name (default: identity.subject)")
    request.add_argument("--san", action="append", default=[], help="Extra SAN entry (repeatable)")

    sign = commands.add_parser("sign", help="Issue a certificate for a CSR under the stored CA identity")
    sign.add_argument("csr", type=Path, help="CSR PEM file")
    sign.add_argument("--out", type=Path, required=True, help="Certificate output path")
    sign.add_argument("--days", type=int, default=365, help="Validity in days (default: 365)")
    return parser


def _request(args: argparse.Namespace, settings: IssuerSettings, store: FilePemStore) -> Result[Path]:
    identity = settings.identity
    builder = CSRBuilder(settings.hash_algorithm())
    return (
        load_key_pair(store, settings.storage.key_path, settings.storage.password_bytes())
        .flat_map(
            lambda key: builder.build(
                key,
                args.organization or identity.organization,
                args.common_name or identity.subject,
                args.san,
            )
        )
        .flat_map(lambda csr: store.write(args.out, csr.encode()))
    )


def _sign(
    args: argparse.Namespace,
    settings: IssuerSettings,
    store: FilePemStore,
    issuer: CertificateIssuer,
) -> Result[Path]:
    valid_until = datetime.now(UTC) + timedelta(days=args.days)
    ca_key = load_key_pair(store, settings.storage.key_path, settings.storage.password_bytes())
    ca_cert = load_certificate(store, settings.storage.certificate_path)
    csr = store.read(args.csr).flat_map(CertificateSigningRequest.decode)
    return (
        Result.combine(ca_key, ca_cert, lambda key, cert: (key, cert))
        .flat_map(
            lambda ca: csr.flat_map(
                lambda request: issuer.issue_for_csr(ca[0], ca[1], request, valid_until)
            )
        )
        .flat_map(lambda cert: store.write(args.out, cert.encode()))
    )


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, wire dependencies and run the selected command."""
    args = build_parser().parse_args(argv)

    try:
        settings = IssuerSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level, json_logs=settings.log_format == "json")
    log = structlog.get_logger()
    log.info("app.starting", version=__version__, command=args.command, log_level=settings.log_level)

    store = FilePemStore()
    issuer = CertificateIssuer(
        random_source=SystemRandomSource(),
        hash_algorithm=settings.hash_algorithm(),
    )

    match args.command:
        case "provision":
            result = provision_identity(settings, store, issuer).map(
                lambda identity: settings.storage.certificate_path
            )
        case "request":
            result = _request(args, settings, store)
        case "sign":
            result = _sign(args, settings, store, issuer)
        case _:  # pragma: no cover - argparse rejects unknown commands
            raise AssertionError(args.command)

    def fail(error: FailureDescription) -> None:
        log.error("app.failed", command=args.command, code=error.code.value, error=error.message)
        sys.exit(1)

    result.either(
        on_success=lambda path: log.info("app.done", command=args.command, output=str(path)),
        on_failure=fail,
    )


if __name__ == "__main__":
    main()
