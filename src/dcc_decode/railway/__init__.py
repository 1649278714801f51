"""
Railway-Oriented Programming primitives for the decoder.

Explicit, composable error handling — no exceptions across layer boundaries.

    from dcc_decode.railway import Result, ErrorCode, Reason

    def require_prefix(token: str) -> Result[str]:
        if not token.startswith("HC1:"):
            return Result.failure(ErrorCode.SCHEME_ERROR, Reason.UNRECOGNIZED_SCHEME, "missing HC1: prefix")
        return Result.success(token[4:])
"""

from dcc_decode.railway.assertions import ResultAssertions
from dcc_decode.railway.failure import DecodeFailure, ErrorCode, FailureDescription, Reason
from dcc_decode.railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "Reason",
    "FailureDescription",
    "DecodeFailure",
    "ResultAssertions",
]
