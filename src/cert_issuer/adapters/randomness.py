"""
Random source adapters — implement the RandomSource port.

SystemRandomSource is the production source: `secrets.token_bytes` reads
the OS CSPRNG and is safe to call from any thread.

SeededRandomSource is deterministic and NOT cryptographically secure. It
exists so tests can reproduce serial numbers. `random.Random` is not
documented as thread-safe, so each draw holds a lock for its duration.
"""

from __future__ import annotations

import random
import secrets
import threading


class SystemRandomSource:
    """OS-backed CSPRNG. Thread-safe."""

    def token_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


class SeededRandomSource:
    """Deterministic random bytes for tests. Never use for real certificates."""

    def __init__(self, seed: int) -> None:
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def token_bytes(self, n: int) -> bytes:
        with self._lock:
            return self._random.randbytes(n)
