"""
Ports — Protocol-based interfaces for the collaborators the core relies on.

  Core ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy the
contract simply by implementing the methods — no inheritance. Tests swap
in deterministic or in-memory implementations.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from railway.result import Result


@runtime_checkable
class RandomSource(Protocol):
    """
    Port: cryptographically secure random bytes for serial numbers.

    Implementations MUST be safe to call from several threads at once.
    The production adapter (SystemRandomSource) delegates to the OS CSPRNG;
    a seeded adapter exists for reproducible tests only.
    """

    def token_bytes(self, n: int) -> bytes: ...


@runtime_checkable
class PemStore(Protocol):
    """
    Port: persist and retrieve PEM containers.

    The bytes handed to `write` are exactly the bytes a later `read`
    returns. Private material is stored readable by the owner only.
    """

    def exists(self, path: Path) -> bool: ...

    def read(self, path: Path) -> Result[bytes]: ...

    def write(self, path: Path, data: bytes, private: bool = False) -> Result[Path]: ...
