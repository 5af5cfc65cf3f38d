"""
Business-level errors raised by the survey services.

Routers translate these into HTTP responses; none of them represent an
infrastructure failure except ``SubmissionPersistenceError``.
"""

from typing import Optional


class SurveyNotFoundError(Exception):
    """No survey matches the token or id (or the caller does not own it)."""

    def __init__(self, message: str = "Survey not found"):
        self.message = message
        super().__init__(message)


class SurveyClosedError(Exception):
    """The survey exists but no longer accepts responses."""

    EXPIRED = "expired"
    INACTIVE = "inactive"
    FULL = "full"

    _MESSAGES = {
        EXPIRED: "Survey has expired",
        INACTIVE: "Survey is no longer active",
        FULL: "Survey has reached maximum responses",
    }

    def __init__(self, reason: str):
        self.reason = reason
        self.message = self._MESSAGES.get(reason, "Survey is closed")
        super().__init__(self.message)


class InvalidRequestError(Exception):
    """The request does not fit the survey rules (answers, question limits)."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AdmissionRejectedError(Exception):
    """The vote admission gate refused the submission."""

    def __init__(self, reason: str, message: str, retry_after: Optional[int] = None):
        self.reason = reason
        self.message = message
        self.retry_after = retry_after
        super().__init__(message)


class SubmissionPersistenceError(Exception):
    """The response rows could not be written."""
