"""Tests for ResultFailures convenience factories."""

from railway import ErrorCode
from railway.result_failures import DECRYPTION_FAILURE_MESSAGE, ResultFailures


class TestConvenienceFactories:
    def test_validation_error(self):
        result = ResultFailures.validation_error("password must not be empty")
        assert result.is_failure()
        assert result.error().code == ErrorCode.VALIDATION_ERROR
        assert result.error().message == "password must not be empty"

    def test_decode_error_keeps_exception(self):
        ex = ValueError("bad base64")
        result = ResultFailures.decode_error("Malformed PEM", ex)
        assert result.error().code == ErrorCode.DECODE_ERROR
        assert result.error().exception is ex

    def test_decryption_error_is_uniform(self):
        first = ResultFailures.decryption_error()
        second = ResultFailures.decryption_error()
        assert first.error().code == ErrorCode.DECRYPTION_ERROR
        assert first.error().message == DECRYPTION_FAILURE_MESSAGE
        assert first.error().message == second.error().message
        assert first.error().exception is None

    def test_invalid_template(self):
        result = ResultFailures.invalid_template("subject must not be empty")
        assert result.error().code == ErrorCode.INVALID_TEMPLATE_ERROR

    def test_invalid_csr(self):
        result = ResultFailures.invalid_csr("signature does not verify")
        assert result.error().code == ErrorCode.INVALID_CSR_ERROR

    def test_issuance_error(self):
        result = ResultFailures.issuance_error("signer is not a CA")
        assert result.error().code == ErrorCode.ISSUANCE_ERROR

    def test_storage_error(self):
        ex = PermissionError("denied")
        result = ResultFailures.storage_error("Failed to write key", ex)
        assert result.error().code == ErrorCode.STORAGE_ERROR
        assert result.error().exception is ex

    def test_key_generation_error(self):
        result = ResultFailures.key_generation_error("key size too small")
        assert result.error().code == ErrorCode.KEY_GENERATION_ERROR
        assert not result.error().code.is_recoverable

    def test_signing_error(self):
        result = ResultFailures.signing_error("sign failed")
        assert result.error().code == ErrorCode.SIGNING_ERROR

    def test_configuration_error(self):
        result = ResultFailures.configuration_error("Missing IDENTITY__SUBJECT")
        assert result.error().code == ErrorCode.CONFIGURATION_ERROR


class TestExceptionMapping:
    def test_value_error_maps_to_validation(self):
        result = ResultFailures.from_exception("bad input", ValueError("x"))
        assert result.error().code == ErrorCode.VALIDATION_ERROR

    def test_type_error_maps_to_validation(self):
        result = ResultFailures.from_exception("wrong type", TypeError("x"))
        assert result.error().code == ErrorCode.VALIDATION_ERROR

    def test_key_error_maps_to_validation(self):
        result = ResultFailures.from_exception("missing key", KeyError("name"))
        assert result.error().code == ErrorCode.VALIDATION_ERROR

    def test_file_not_found_maps_to_storage(self):
        result = ResultFailures.from_exception("no file", FileNotFoundError("x"))
        assert result.error().code == ErrorCode.STORAGE_ERROR

    def test_permission_error_maps_to_storage(self):
        result = ResultFailures.from_exception("denied", PermissionError("x"))
        assert result.error().code == ErrorCode.STORAGE_ERROR

    def test_unknown_exception_maps_to_unknown(self):
        result = ResultFailures.from_exception("wat", RuntimeError("x"))
        assert result.error().code == ErrorCode.UNKNOWN_ERROR
        assert result.error().message == "wat"
