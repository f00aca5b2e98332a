"""
Failure description — structured error information for the failure track.

A failure is an ErrorCode (what kind of thing went wrong, so callers can
branch on it) plus a human-readable message, an optional causing exception
and a timestamp.

The codes are grouped by who can act on them:
  - Caller errors: bad input that the caller can fix and resubmit
  - Fatal errors: primitive or environment failures, never retried here
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Caller-recoverable: VALIDATION, DECODE, DECRYPTION, INVALID_TEMPLATE, INVALID_CSR,
    ISSUANCE, STORAGE.
    Fatal: KEY_GENERATION, SIGNING, CONFIGURATION, UNKNOWN.
    """

    # --- Caller-recoverable errors ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Invalid argument, or a check over well-formed input did not hold."""

    DECODE_ERROR = "DECODE_ERROR"
    """Bytes are not a well-formed container of the expected kind."""

    DECRYPTION_ERROR = "DECRYPTION_ERROR"
    """Wrong password or corrupted ciphertext. Always reported with the same message."""

    INVALID_TEMPLATE_ERROR = "INVALID_TEMPLATE_ERROR"
    """Certificate parameters rejected (empty subject, validity window, SAN entry)."""

    INVALID_CSR_ERROR = "INVALID_CSR_ERROR"
    """Signing request signature does not verify, or a required field is missing."""

    ISSUANCE_ERROR = "ISSUANCE_ERROR"
    """Signer certificate cannot act as issuer for the requested certificate."""

    STORAGE_ERROR = "STORAGE_ERROR"
    """Reading or writing PEM material failed."""

    # --- Fatal errors ---
    KEY_GENERATION_ERROR = "KEY_GENERATION_ERROR"
    """Key generation failed (bad parameters or entropy starvation)."""

    SIGNING_ERROR = "SIGNING_ERROR"
    """The signing primitive failed."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""

    @property
    def is_recoverable(self) -> bool:
        """True when the caller can fix its input and try again."""
        return self not in _FATAL_CODES


_FATAL_CODES = frozenset(
    {
        ErrorCode.KEY_GENERATION_ERROR,
        ErrorCode.SIGNING_ERROR,
        ErrorCode.CONFIGURATION_ERROR,
        ErrorCode.UNKNOWN_ERROR,
    }
)


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.DECODE_ERROR, "not a PEM certificate")
    >>> desc.code
    <ErrorCode.DECODE_ERROR: 'DECODE_ERROR'>
    >>> desc.message
    'not a PEM certificate'
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def create(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> FailureDescription:
        """Build a description with the current timestamp."""
        return FailureDescription(code=code, message=message, exception=exception)

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__))
        return f"{self.message}\n{tb}"
