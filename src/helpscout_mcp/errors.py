"""Error taxonomy for Help Scout tool calls.

Every failure a tool call can report maps onto one ErrorCode:
- INVALID_INPUT: tool arguments failed their schema or a business input check
- CONSTRAINT_VIOLATION: workflow prerequisite unmet (carried by validator rejections)
- NOT_FOUND: referenced entity does not exist
- UNAUTHORIZED: credentials rejected by Help Scout
- RATE_LIMIT: Help Scout asked us to slow down
- UPSTREAM_ERROR: network or provider failure
- PARTIAL_FAILURE: a multi-step write stopped after some steps took effect
"""
import enum
from typing import Any, Optional

from pydantic import ValidationError


class ErrorCode(str, enum.Enum):
    INVALID_INPUT = "INVALID_INPUT"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT = "RATE_LIMIT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"


class HelpScoutToolError(Exception):
    """Base class for failures reported back to the calling agent."""

    code: ErrorCode = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.retry_after = retry_after


class InvalidInputError(HelpScoutToolError):
    code = ErrorCode.INVALID_INPUT


class NotFoundError(HelpScoutToolError):
    code = ErrorCode.NOT_FOUND


class UnauthorizedError(HelpScoutToolError):
    code = ErrorCode.UNAUTHORIZED


class RateLimitError(HelpScoutToolError):
    code = ErrorCode.RATE_LIMIT


class UpstreamError(HelpScoutToolError):
    code = ErrorCode.UPSTREAM_ERROR


class PartialFailureError(HelpScoutToolError):
    """Raised when a multi-step write fails after earlier steps took effect.

    Nothing is rolled back. The details name the conversation that now exists
    in Help Scout, the steps that completed, and the steps that failed, so the
    caller can finish or clean up by hand.
    """

    code = ErrorCode.PARTIAL_FAILURE

    def __init__(
        self,
        message: str,
        conversation_id: str,
        completed_steps: list[str],
        failed_steps: list[str],
        cause: Optional[HelpScoutToolError] = None,
    ):
        details: dict[str, Any] = {
            "conversationId": conversation_id,
            "completedSteps": list(completed_steps),
            "failedSteps": list(failed_steps),
        }
        if cause is not None:
            details["cause"] = {"code": cause.code.value, "message": cause.message}
        super().__init__(message, details=details)
        self.conversation_id = conversation_id
        self.completed_steps = list(completed_steps)
        self.failed_steps = list(failed_steps)
        self.cause = cause


def validation_issues(error: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into `{field, message}` entries."""
    return [
        {
            "field": ".".join(str(part) for part in issue["loc"]),
            "message": issue["msg"],
        }
        for issue in error.errors()
    ]


def error_payload(error: Exception) -> dict[str, Any]:
    """Translate an exception into the structured error response body."""
    if isinstance(error, HelpScoutToolError):
        body: dict[str, Any] = {
            "code": error.code.value,
            "message": error.message,
            "details": error.details,
        }
        if error.retry_after is not None:
            body["retryAfter"] = error.retry_after
        return {"error": body}

    return {
        "error": {
            "code": ErrorCode.UPSTREAM_ERROR.value,
            "message": f"{type(error).__name__}: {error}",
            "details": {},
        }
    }
