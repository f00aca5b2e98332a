"""
Test assertions for Result values.

Usage in tests:
    from railway import ErrorCode, ResultAssertions

    def test_round_trip():
        key = ResultAssertions.assert_success(KeyPair.decode_plain(pem))
        assert key.public_key_pem() == original.public_key_pem()

    def test_wrong_password():
        result = KeyPair.decode_encrypted(pem, b"wrong")
        ResultAssertions.assert_failure(result, ErrorCode.DECRYPTION_ERROR)
"""

from __future__ import annotations

from typing import Any, TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """
        Assert the Result is a Success and return the value.

            cert = ResultAssertions.assert_success(issuer.self_sign(key, template))
        """
        context = f" — {message}" if message else ""
        assert result.is_success(), (
            f"Expected Success but got Failure("
            f"{result.error().code.value}: {result.error().message!r}){context}"
        )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """Assert the Result is a Failure, optionally checking the error code."""
        context = f" — {message}" if message else ""
        assert result.is_failure(), (
            f"Expected Failure but got Success({result.value()!r}){context}"
        )
        error = result.error()
        if expected_code is not None:
            assert error.code == expected_code, (
                f"Expected error code {expected_code.value} "
                f"but got {error.code.value}: {error.message!r}{context}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Assert that the failure message contains the given substring (case-insensitive)."""
        assert result.is_failure(), (
            f"Expected Failure but got Success({result.value()!r})"
        )
        error = result.error()
        assert substring.lower() in error.message.lower(), (
            f"Expected failure message to contain {substring!r} "
            f"but message was: {error.message!r}"
        )

    @staticmethod
    def assert_opaque_failure(result: Result[T], expected_code: ErrorCode) -> FailureDescription:
        """
        Assert a Failure with the given code that carries no causing exception.

        Used for failures that must not reveal their cause (decryption).
        """
        error = ResultAssertions.assert_failure(result, expected_code)
        assert error.exception is None, (
            f"Expected no attached exception but got {type(error.exception).__name__}"
        )
        return error

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        """Assert the Result is a Success with the specific value."""
        value = ResultAssertions.assert_success(result)
        assert value == expected_value, (
            f"Expected success value {expected_value!r} but got {value!r}"
        )
