"""
Railway-Oriented Programming (ROP) Framework for Python.

Explicit, composable, functional error handling — no exceptions in business logic.

    from railway import Result, ErrorCode

    def require_subject(subject: str) -> Result[str]:
        if not subject.strip():
            return Result.failure(ErrorCode.INVALID_TEMPLATE_ERROR, "subject must not be empty")
        return Result.success(subject.strip())

    result = (
        Result.success("  example.org ")
        .flat_map(require_subject)
        .map(str.upper)
    )
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
