"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Creating single and shared rides (with join codes)
    - Joining and leaving shared rides
    - Accepting, completing and cancelling rides
    - Rating ride members after completion
    - Querying available rides and ride history
"""

from .ride_lifecycle import (
    RideResult,
    Place,
    create_single_ride,
    create_shared_ride,
    join_shared_ride,
    cancel_ride,
    list_available_rides,
    accept_ride,
    complete_ride,
    get_passenger_rides,
    get_rider_rides,
    get_ride_detail,
    vehicle_capacities,
    MAX_CAPACITY,
)

from .ratings import rate_ride

from .store import RideStore, default_store

from .exceptions import (
    RideNotFoundError,
    ParticipantNotFoundError,
    RideForbiddenError,
    RideConflictError,
    InvalidRideStateError,
    InvalidRideTypeError,
    RideFullError,
    AlreadyJoinedError,
    SharedCodeExhaustedError,
    RateeNotRelatedError,
    RideValidationError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "Place",
    "create_single_ride",
    "create_shared_ride",
    "join_shared_ride",
    "cancel_ride",
    "list_available_rides",
    "accept_ride",
    "complete_ride",
    "get_passenger_rides",
    "get_rider_rides",
    "get_ride_detail",
    "vehicle_capacities",
    "MAX_CAPACITY",
    "rate_ride",
    # Persistence
    "RideStore",
    "default_store",
    # Exceptions
    "RideNotFoundError",
    "ParticipantNotFoundError",
    "RideForbiddenError",
    "RideConflictError",
    "InvalidRideStateError",
    "InvalidRideTypeError",
    "RideFullError",
    "AlreadyJoinedError",
    "SharedCodeExhaustedError",
    "RateeNotRelatedError",
    "RideValidationError",
]
