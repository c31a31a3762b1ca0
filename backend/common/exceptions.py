"""
Error taxonomy shared by the service layer and the DRF exception handler.

Services raise a `ServiceError` subclass; the handler below turns it into a
structured response so views never translate exceptions by hand.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""
    error_code = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class UnauthenticatedError(ServiceError):
    """Raised when no authenticated identity is attached to the call."""
    error_code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(ServiceError):
    """Raised when the caller is authenticated but not allowed to act."""
    error_code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    error_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(ServiceError):
    error_code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class BadRequestError(ServiceError):
    error_code = "bad_request"
    default_message = "Bad request"


class InputValidationError(BadRequestError):
    """Malformed or out of range input. `errors` maps field name -> list of messages."""
    error_code = "validation_error"
    default_message = "Invalid input"


def api_exception_handler(exc, context):
    """
    DRF exception handler.

    - ServiceError -> {"success": false, "error": <code>, "message": <text>}
    - DRF exceptions (validation, auth, 404...) -> default DRF rendering
    - anything else -> logged, reported as a generic 500
    """
    if isinstance(exc, ServiceError):
        payload = {
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
        }
        if exc.errors:
            payload["errors"] = exc.errors
        return Response(payload, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", view.__class__.__name__ if view else "unknown view")
    return Response(
        {"success": False, "error": "server_error", "message": "Server error"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
