# errors.py — HTTP error taxonomy for the Taskboard API
# Every error leaves the API as {"error": <message>, "details": <optional>}.
from typing import Any, Dict, Optional

from fastapi import HTTPException


class APIError(HTTPException):
    """Base class: an HTTPException with a fixed status code and optional details"""

    status = 500
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.status, detail=message or self.default_message, headers=headers)
        self.details = details


class ValidationError(APIError):
    status = 400
    default_message = "Validation error"


class AuthenticationError(APIError):
    status = 401
    default_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(APIError):
    status = 403
    default_message = "Access denied"


class NotFoundError(APIError):
    status = 404
    default_message = "Not found"


class InternalError(APIError):
    status = 500
    default_message = "Internal server error"


def error_body(message: str, details: Any = None, request_id: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    body["request_id"] = request_id
    return body
