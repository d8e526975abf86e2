"""Error taxonomy for the Teach Me engine.

Every error carries a stable ``code``, an HTTP status for the API layer, a
``retryable`` flag and a generic learner-facing message. Operator detail
stays in the exception text and in logs.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

GENERIC_RETRY_MESSAGE = "Something went wrong on our side. Please try again."

RAW_PREFIX_CHARS = 200


class TeachMeError(Exception):
    code = "teach_me_error"
    http_status = 500
    retryable = False
    public_message = GENERIC_RETRY_MESSAGE

    def to_payload(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.public_message,
            "retryable": self.retryable,
        }


class OracleUnavailable(TeachMeError):
    """Every configured oracle provider failed for one request."""

    code = "oracle_unavailable"
    http_status = 503

    def __init__(self, message: str, *, failures: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.failures = dict(failures or {})


class AnalysisParseError(TeachMeError):
    """The oracle answered but its output did not match the required shape."""

    code = "analysis_parse_error"
    http_status = 502

    def __init__(self, message: str, *, raw: Optional[str] = None) -> None:
        self.raw_prefix = (raw or "")[:RAW_PREFIX_CHARS]
        detail = f"{message} raw={self.raw_prefix!r}" if raw is not None else message
        super().__init__(detail)


class SessionNotFound(TeachMeError):
    code = "session_not_found"
    http_status = 404
    public_message = "This session could not be found."


class NotAuthorized(TeachMeError):
    code = "not_authorized"
    http_status = 403
    public_message = "You do not have access to this session."


class InvalidSessionState(TeachMeError):
    code = "invalid_session_state"
    http_status = 409
    public_message = "This action is not available for the session right now."


class PersistenceConflict(TeachMeError):
    """A concurrent writer changed the session after it was read."""

    code = "persistence_conflict"
    http_status = 409
    retryable = True
    public_message = "Your previous answer is still being processed. Please try again."


__all__ = [
    "AnalysisParseError",
    "GENERIC_RETRY_MESSAGE",
    "InvalidSessionState",
    "NotAuthorized",
    "OracleUnavailable",
    "PersistenceConflict",
    "SessionNotFound",
    "TeachMeError",
]
