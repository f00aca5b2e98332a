"""
Convenience factory methods for common Result failures.

Usage:
    from railway.result_failures import ResultFailures

    # Instead of:
    Result.failure(ErrorCode.INVALID_TEMPLATE_ERROR, "subject must not be empty")

    # Write:
    ResultFailures.invalid_template("subject must not be empty")
"""

from __future__ import annotations

from typing import TypeVar

from railway.failure import ErrorCode
from railway.result import Result

T = TypeVar("T")

# Decryption failures never say why: wrong password, bad padding and corrupted
# ciphertext must look the same to the caller.
DECRYPTION_FAILURE_MESSAGE = "Unable to decrypt private key"


class ResultFailures:
    """Factory methods, one per ErrorCode, plus exception mapping."""

    @staticmethod
    def validation_error(message: str) -> Result:
        return Result.failure(ErrorCode.VALIDATION_ERROR, message)

    @staticmethod
    def decode_error(message: str, exception: BaseException | None = None) -> Result:
        """Malformed container — the caller should not retry with the same bytes."""
        return Result.failure(ErrorCode.DECODE_ERROR, message, exception)

    @staticmethod
    def decryption_error() -> Result:
        """
        Wrong password or corrupted ciphertext.

        Takes no arguments on purpose: the message and the (absent) exception
        are identical for every cause.
        """
        return Result.failure(ErrorCode.DECRYPTION_ERROR, DECRYPTION_FAILURE_MESSAGE)

    @staticmethod
    def invalid_template(message: str) -> Result:
        return Result.failure(ErrorCode.INVALID_TEMPLATE_ERROR, message)

    @staticmethod
    def invalid_csr(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.INVALID_CSR_ERROR, message, exception)

    @staticmethod
    def issuance_error(message: str) -> Result:
        return Result.failure(ErrorCode.ISSUANCE_ERROR, message)

    @staticmethod
    def storage_error(message: str, exception: BaseException | None = None) -> Result:
        return Result.failure(ErrorCode.STORAGE_ERROR, message, exception)

    @staticmethod
    def key_generation_error(message: str, exception: BaseException | None = None) -> Result:
        """Fatal — not retried."""
        return Result.failure(ErrorCode.KEY_GENERATION_ERROR, message, exception)

    @staticmethod
    def signing_error(message: str, exception: BaseException | None = None) -> Result:
        """Fatal — not retried."""
        return Result.failure(ErrorCode.SIGNING_ERROR, message, exception)

    @staticmethod
    def configuration_error(message: str) -> Result:
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, message)

    @staticmethod
    def from_exception(message: str, exception: BaseException) -> Result:
        """
        Auto-map a Python exception to the appropriate ErrorCode.

        Mapping:
          - ValueError, TypeError, KeyError → VALIDATION_ERROR
          - OSError (incl. FileNotFoundError, PermissionError) → STORAGE_ERROR
          - Everything else → UNKNOWN_ERROR
        """
        code = _map_exception_to_code(exception)
        return Result.failure(code, message, exception)


def _map_exception_to_code(exception: BaseException) -> ErrorCode:
    """Map a Python exception type to the most appropriate ErrorCode."""
    match exception:
        case ValueError() | TypeError() | KeyError():
            return ErrorCode.VALIDATION_ERROR
        case OSError():
            return ErrorCode.STORAGE_ERROR
        case _:
            return ErrorCode.UNKNOWN_ERROR
