"""
Domain error kinds.

Services raise these the same way they raise any ``HTTPException``; FastAPI
renders them with the status code and the user-facing message below.
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Malformed date range or missing/invalid field."""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=422, detail=detail)


class InvalidTransition(HTTPException):
    """State machine precondition violated; stored state is unchanged."""

    def __init__(self, detail: str = "This request has already been processed"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str = "This billboard is no longer available for those dates"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AlreadyUsed(HTTPException):
    def __init__(self, detail: str = "This invitation is no longer valid"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


class Expired(HTTPException):
    def __init__(self, detail: str = "This invitation is no longer valid"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


class Unauthorized(HTTPException):
    """Caller is authenticated but lacks the required role or ownership."""

    def __init__(self, detail: str = "You are not allowed to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ServiceUnavailable(HTTPException):
    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
