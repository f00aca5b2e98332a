"""
PEM file adapter — implements the PemStore port on the local filesystem.

Thin I/O around the core serialization routines: the bytes written are
exactly what `encode*` produced, and the bytes read are handed unchanged
to `decode*`. `pathlib` read/write helpers open and close the file on every
path, errors included.

Private key files are created with mode 0600 before any key material is
written to them.
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from cert_issuer.certificate import Certificate
from cert_issuer.domain.models import CipherKind
from cert_issuer.domain.ports import PemStore
from cert_issuer.keys import KeyPair

log = structlog.get_logger()

PRIVATE_FILE_MODE = 0o600


class FilePemStore:
    """Store PEM containers as files. Parent directories are created on write."""

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def read(self, path: Path) -> Result[bytes]:
        return Result.from_computation(
            lambda: Path(path).read_bytes(),
            ErrorCode.STORAGE_ERROR,
            f"Failed to read {path}",
        )

    def write(self, path: Path, data: bytes, private: bool = False) -> Result[Path]:
        return Result.from_computation(
            lambda: self._do_write(Path(path), data, private),
            ErrorCode.STORAGE_ERROR,
            f"Failed to write {path}",
        ).peek(lambda written: log.info("pem.written", path=str(written), private=private))

    def _do_write(self, path: Path, data: bytes, private: bool) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not private:
            path.write_bytes(data)
            return path
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        # O_CREAT leaves the mode of an existing file untouched
        path.chmod(PRIVATE_FILE_MODE)
        return path


# ─────────────────────── KeyPair / Certificate helpers ───────────────────────


def load_key_pair(store: PemStore, path: Path, password: bytes | None = None) -> Result[KeyPair]:
    """Read a private key, decrypting it when a password is given."""
    if password:
        return store.read(path).flat_map(lambda data: KeyPair.decode_encrypted(data, password))
    return store.read(path).flat_map(KeyPair.decode_plain)


def save_key_pair(
    store: PemStore,
    path: Path,
    key_pair: KeyPair,
    password: bytes | None = None,
    cipher: CipherKind = CipherKind.BEST_AVAILABLE,
) -> Result[Path]:
    """Write a private key, encrypted when a password is given."""
    if password:
        encoded = key_pair.encode_encrypted(password, cipher)
    else:
        encoded = Result.success(key_pair.encode_plain())
    return encoded.flat_map(lambda data: store.write(path, data, private=True))


def load_certificate(store: PemStore, path: Path) -> Result[Certificate]:
    return store.read(path).flat_map(Certificate.decode)


def save_certificate(store: PemStore, path: Path, certificate: Certificate) -> Result[Path]:
    return store.write(path, certificate.encode())
