"""Typed failures raised by the assessment store and service.

Each error carries a machine-readable `kind` and the HTTP status the API
renders it with; the app turns them into ``{"error": {"kind", "message"}}``.
"""


class AssessmentError(Exception):
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFound(AssessmentError):
    kind = "NotFound"
    status_code = 404


class Forbidden(AssessmentError):
    kind = "Forbidden"
    status_code = 403


class InvalidInput(AssessmentError):
    kind = "InvalidInput"
    status_code = 400


class InvalidState(AssessmentError):
    kind = "InvalidState"
    status_code = 400


class Internal(AssessmentError):
    kind = "Internal"
    status_code = 500


class DuplicateOngoingAttempt(AssessmentError):
    """Storage rejected a second ongoing attempt for the same quiz and student."""
    kind = "Conflict"
    status_code = 409
