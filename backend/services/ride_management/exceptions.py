"""Custom exceptions for ride management."""

from rest_framework import status

from common.exceptions import (
    ServiceError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    BadRequestError,
    InputValidationError,
)


class RideNotFoundError(NotFoundError):
    """Raised when a ride cannot be found."""
    error_code = "ride_not_found"
    default_message = "Ride not found"


class ParticipantNotFoundError(NotFoundError):
    """Raised when the caller has no participant row on the ride."""
    error_code = "participant_not_found"
    default_message = "Participant not found"


class RideForbiddenError(ForbiddenError):
    """Raised when the caller is not allowed to act on this ride."""
    error_code = "not_part_of_ride"
    default_message = "Not part of this ride"


class RideConflictError(ConflictError):
    """Raised when a concurrent request won the race for this ride."""
    error_code = "ride_unavailable"
    default_message = "Ride already accepted or unavailable"


class InvalidRideStateError(ServiceError):
    """Raised when a ride is not in a valid state for the operation."""
    error_code = "invalid_state"
    default_message = "Ride is not in a valid state for this action"


class InvalidRideTypeError(ServiceError):
    """Raised when a shared-only action targets a single ride."""
    error_code = "not_shared_ride"
    default_message = "Not a shared ride"


class RideFullError(ServiceError):
    """Raised when a shared ride has no free seat left."""
    error_code = "ride_full"
    default_message = "Ride is full"


class AlreadyJoinedError(ServiceError):
    """Raised when the passenger already has a seat on the ride."""
    error_code = "already_joined"
    default_message = "You have already joined this ride"


class SharedCodeExhaustedError(ServiceError):
    """Raised when no free join code was found within the retry budget."""
    error_code = "code_generation_exhausted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Failed to generate unique shared ride code"


class RateeNotRelatedError(BadRequestError):
    """Raised when the rated user has nothing to do with the ride."""
    error_code = "ratee_not_related"
    default_message = "Ratee not related to this ride"


class RideValidationError(InputValidationError):
    """Raised for out of range ride input (fare, capacity, vehicle type, score)."""
    pass
