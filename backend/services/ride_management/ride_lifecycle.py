"""
Core ride lifecycle operations.

This module owns every ride state transition:

    PENDING  --accept(rider)-------------> ACCEPTED
    PENDING  --cancel(creator)-----------> CANCELLED
    ACCEPTED --cancel(creator/participant)-> CANCELLED
    ACCEPTED --complete(assigned rider)---> COMPLETED
    ONGOING  --complete(assigned rider)---> COMPLETED

ONGOING is accepted by `complete_ride` but nothing moves a ride into it yet.

All persistence goes through a `RideStore`; pass `store=` to inject another
one (tests do). Operations return a `RideResult` on success and raise a
`ServiceError` subclass on failure.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any

from django.conf import settings
from django.db import IntegrityError
from django.utils import timezone

from common.permissions import ensure_role, ROLE_PASSENGER, ROLE_RIDER, ROLE_ADMIN
from rides.models import Ride
from .store import RideStore, default_store
from .shared_code import create_unique_shared_code, normalize_shared_code
from .exceptions import (
    RideForbiddenError,
    RideConflictError,
    RideNotFoundError,
    ParticipantNotFoundError,
    InvalidRideStateError,
    InvalidRideTypeError,
    RideFullError,
    AlreadyJoinedError,
    RideValidationError,
)

logger = logging.getLogger(__name__)

# Largest value Ride.capacity (a PositiveSmallIntegerField) can hold
MAX_CAPACITY = 32767

# Decimal places stored by the Ride columns
FARE_PLACES = 2
DISTANCE_PLACES = 2
COORDINATE_PLACES = 6

# Fields describing where/when a rider accepted; cleared when the ride leaves ACCEPTED/ONGOING
ACCEPTANCE_CLEARED = {
    "accepted_latitude": None,
    "accepted_longitude": None,
    "accepted_at": None,
}


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


@dataclass
class Place:
    """Pickup or destination: an address with optional coordinates."""
    address: str
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None


# ===================== Validation Helpers =====================

def vehicle_capacities() -> Dict[str, int]:
    """Vehicle class -> seats. Policy lives in settings.RIDE_VEHICLE_CAPACITIES."""
    return dict(settings.RIDE_VEHICLE_CAPACITIES)


def capacity_for_vehicle(vehicle_type: str) -> int:
    capacities = vehicle_capacities()
    if vehicle_type not in capacities:
        raise RideValidationError(
            "Unknown vehicle type",
            errors={"vehicle_type": [f"Must be one of: {', '.join(sorted(capacities))}"]},
        )
    return capacities[vehicle_type]


def _to_decimal(value, field: str, places: int) -> Decimal:
    # str() first so floats keep the value the client typed, not its binary expansion
    try:
        value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise RideValidationError(errors={field: ["A valid number is required."]})
    if not value.is_finite():
        raise RideValidationError(errors={field: ["A valid number is required."]})
    # The column would round anything finer, leaving the returned ride out of sync with the row
    if value.as_tuple().exponent < -places:
        raise RideValidationError(
            errors={field: [f"Ensure that there are no more than {places} decimal places."]}
        )
    return value


def _validate_fare(fare) -> Decimal:
    fare = _to_decimal(fare, "fare", FARE_PLACES)
    if fare < 0:
        raise RideValidationError(errors={"fare": ["Ensure this value is greater than or equal to 0."]})
    return fare


def _optional_decimal(value, field: str, places: int):
    return None if value is None else _to_decimal(value, field, places)


def _validate_place(place: Place, field: str) -> Place:
    if not place or not (place.address or "").strip():
        raise RideValidationError(errors={field: ["This field may not be blank."]})
    return place


def _ride_fields(passenger, pickup: Place, destination: Place, fare, distance_km, scheduled_at, vehicle_type):
    pickup = _validate_place(pickup, "pickup_address")
    destination = _validate_place(destination, "destination_address")
    return {
        "passenger": passenger,
        "pickup_address": pickup.address.strip(),
        "pickup_latitude": _optional_decimal(pickup.latitude, "pickup_latitude", COORDINATE_PLACES),
        "pickup_longitude": _optional_decimal(pickup.longitude, "pickup_longitude", COORDINATE_PLACES),
        "destination_address": destination.address.strip(),
        "destination_latitude": _optional_decimal(destination.latitude, "destination_latitude", COORDINATE_PLACES),
        "destination_longitude": _optional_decimal(destination.longitude, "destination_longitude", COORDINATE_PLACES),
        "fare": _validate_fare(fare),
        "distance_km": _optional_decimal(distance_km, "distance_km", DISTANCE_PLACES),
        "scheduled_at": scheduled_at,
        "vehicle_type": vehicle_type,
        "status": Ride.STATUS_PENDING,
    }


# ===================== Passenger Operations =====================

def create_single_ride(
    passenger,
    pickup: Place,
    destination: Place,
    fare,
    distance_km=None,
    scheduled_at=None,
    vehicle_type: Optional[str] = None,
    store: Optional[RideStore] = None,
) -> RideResult:
    """
    Create a single-occupant ride.

    The creator is inserted as the ride's first participant so history
    queries treat created and joined rides the same way.
    """
    ensure_role(passenger, ROLE_PASSENGER)
    store = store or default_store

    if vehicle_type is not None:
        capacity_for_vehicle(vehicle_type)

    fields = _ride_fields(passenger, pickup, destination, fare, distance_km, scheduled_at, vehicle_type)

    with store.atomic():
        ride = store.create_ride(ride_type=Ride.TYPE_SINGLE, **fields)
        store.add_participant(ride, passenger)

    logger.info("Passenger %s created single ride %s", passenger.id, ride.id)
    return RideResult(success=True, ride=ride, message="Ride created")


def create_shared_ride(
    passenger,
    pickup: Place,
    destination: Place,
    fare,
    vehicle_type: str,
    capacity: Optional[int] = None,
    distance_km=None,
    scheduled_at=None,
    store: Optional[RideStore] = None,
) -> RideResult:
    """
    Create a shared ride with a join code.

    Capacity is the explicit value when given, otherwise the seat count of
    `vehicle_type`. The creator takes the first seat.

    Raises:
        RideValidationError: bad fare / vehicle type / capacity
        SharedCodeExhaustedError: no free join code found
        RideConflictError: another ride grabbed the same code between check and insert
    """
    ensure_role(passenger, ROLE_PASSENGER)
    store = store or default_store

    default_capacity = capacity_for_vehicle(vehicle_type)
    if capacity is None:
        capacity = default_capacity
    elif isinstance(capacity, bool) or not isinstance(capacity, int) or not 1 <= capacity <= MAX_CAPACITY:
        raise RideValidationError(
            errors={"capacity": [f"Capacity must be an integer between 1 and {MAX_CAPACITY}."]}
        )

    fields = _ride_fields(passenger, pickup, destination, fare, distance_km, scheduled_at, vehicle_type)

    with store.atomic():
        code = create_unique_shared_code(store.shared_code_exists)
        try:
            ride = store.create_ride(
                ride_type=Ride.TYPE_SHARED,
                shared_code=code,
                capacity=capacity,
                **fields,
            )
        except IntegrityError:
            logger.warning("Shared code %s taken by a concurrent ride", code)
            raise RideConflictError("Shared ride code was just taken, please try again")
        store.add_participant(ride, passenger)

    logger.info(
        "Passenger %s created shared ride %s (code=%s, capacity=%s)",
        passenger.id, ride.id, code, capacity,
    )
    return RideResult(
        success=True,
        ride=ride,
        message="Shared ride created",
        extra={"shared_code": code},
    )


def join_shared_ride(passenger, code: str, store: Optional[RideStore] = None) -> RideResult:
    """
    Take a seat on a shared ride by its join code.

    The ride row is locked for the whole check-then-insert so two passengers
    racing for the last seat are serialized: the second one recounts and
    gets RideFullError.

    Raises:
        RideNotFoundError: no ride with that code
        InvalidRideTypeError: the code belongs to a single ride
        InvalidRideStateError: the ride is already cancelled or completed
        RideFullError: no seat left
        AlreadyJoinedError: passenger already has a seat
    """
    ensure_role(passenger, ROLE_PASSENGER)
    store = store or default_store
    code = normalize_shared_code(code)

    with store.atomic():
        ride = store.get_ride_by_code(code, for_update=True)

        if ride.ride_type != Ride.TYPE_SHARED:
            raise InvalidRideTypeError()

        if ride.status in (Ride.STATUS_CANCELLED, Ride.STATUS_COMPLETED):
            raise InvalidRideStateError(f"Cannot join - ride is already {ride.status}")

        if store.count_participants(ride) >= ride.capacity:
            raise RideFullError()

        if store.is_participant(ride, passenger.id):
            raise AlreadyJoinedError()

        participant = store.add_participant(ride, passenger)

    logger.info("Passenger %s joined shared ride %s", passenger.id, ride.id)
    return RideResult(
        success=True,
        ride=ride,
        message="Joined shared ride",
        extra={"participant": participant},
    )


def cancel_ride(actor, ride_id: int, store: Optional[RideStore] = None) -> RideResult:
    """
    Cancel a ride, or leave it.

    - ACCEPTED: the whole ride is cancelled and the rider released, whoever
      of the creator/participants asks.
    - PENDING single: creator only.
    - PENDING shared: the creator cancels the ride; any other participant
      only gives up their own seat and the ride stays PENDING.

    Raises:
        RideNotFoundError, RideForbiddenError, ParticipantNotFoundError,
        InvalidRideStateError
    """
    ensure_role(actor, ROLE_PASSENGER)
    store = store or default_store

    with store.atomic():
        ride = store.get_ride(ride_id, for_update=True)

        is_creator = ride.passenger_id == actor.id
        is_participant = store.is_participant(ride, actor.id)
        if not is_creator and not is_participant:
            raise RideForbiddenError("Not part of this ride")

        now = timezone.now()

        if ride.status == Ride.STATUS_ACCEPTED:
            released_rider_id = ride.rider_id
            store.save_ride(
                ride,
                status=Ride.STATUS_CANCELLED,
                rider=None,
                cancelled_at=now,
                **ACCEPTANCE_CLEARED,
            )
            logger.info(
                "User %s cancelled accepted ride %s, rider %s released",
                actor.id, ride.id, released_rider_id,
            )
            return RideResult(
                success=True,
                ride=ride,
                message="Ride cancelled (was accepted)",
                extra={"was_assigned": True},
            )

        if ride.status != Ride.STATUS_PENDING:
            raise InvalidRideStateError(f"Cannot cancel - ride is already {ride.status}")

        if ride.ride_type == Ride.TYPE_SINGLE:
            if not is_creator:
                raise RideForbiddenError("Only ride creator can cancel this single ride")
            store.save_ride(ride, status=Ride.STATUS_CANCELLED, cancelled_at=now)
            logger.info("Passenger %s cancelled single ride %s", actor.id, ride.id)
            return RideResult(success=True, ride=ride, message="Single ride cancelled")

        if is_creator:
            store.save_ride(ride, status=Ride.STATUS_CANCELLED, cancelled_at=now)
            logger.info("Creator %s cancelled shared ride %s", actor.id, ride.id)
            return RideResult(success=True, ride=ride, message="Shared ride cancelled (creator cancelled)")

        if not store.remove_participant(ride, actor):
            raise ParticipantNotFoundError()

    logger.info("Passenger %s left shared ride %s", actor.id, ride.id)
    return RideResult(
        success=True,
        ride=ride,
        message="You left the shared ride",
        extra={"left_ride": True},
    )


def get_passenger_rides(passenger, store: Optional[RideStore] = None):
    """Participant rows (created or joined rides), newest join first."""
    ensure_role(passenger, ROLE_PASSENGER)
    store = store or default_store
    return store.participations_for_passenger(passenger)


# ===================== Rider Operations =====================

def list_available_rides(rider, ride_type: str, store: Optional[RideStore] = None):
    """PENDING rides of `ride_type` a rider can pick up, oldest first."""
    ensure_role(rider, ROLE_RIDER)
    store = store or default_store

    if ride_type not in (Ride.TYPE_SINGLE, Ride.TYPE_SHARED):
        raise RideValidationError(errors={"type": ["Must be 'single' or 'shared'."]})

    return store.available_rides(ride_type)


def accept_ride(rider, ride_id: int, latitude, longitude, store: Optional[RideStore] = None) -> RideResult:
    """
    Claim a PENDING ride.

    The status flip is a single conditional UPDATE (status must still be
    PENDING), so with two riders racing exactly one row change happens and
    the other rider gets RideConflictError.
    """
    ensure_role(rider, ROLE_RIDER)
    store = store or default_store

    won = store.compare_and_set(
        ride_id,
        [Ride.STATUS_PENDING],
        status=Ride.STATUS_ACCEPTED,
        rider=rider,
        accepted_latitude=_to_decimal(latitude, "latitude", COORDINATE_PLACES),
        accepted_longitude=_to_decimal(longitude, "longitude", COORDINATE_PLACES),
        accepted_at=timezone.now(),
    )

    if not won:
        if not store.ride_exists(ride_id):
            raise RideNotFoundError()
        logger.warning("Rider %s lost the race for ride %s", rider.id, ride_id)
        raise RideConflictError()

    ride = store.get_ride_expanded(ride_id)
    logger.info("Rider %s accepted ride %s", rider.id, ride_id)

    return RideResult(success=True, ride=ride, message="Ride accepted")


def complete_ride(rider, ride_id: int, store: Optional[RideStore] = None) -> RideResult:
    """
    Complete a ride - called by the assigned rider.

    Raises:
        RideNotFoundError, RideForbiddenError (not the assigned rider),
        InvalidRideStateError (not ACCEPTED/ONGOING)
    """
    ensure_role(rider, ROLE_RIDER)
    store = store or default_store

    with store.atomic():
        ride = store.get_ride(ride_id, for_update=True)

        if ride.rider_id != rider.id:
            raise RideForbiddenError("Not the accepting rider")

        if ride.status not in (Ride.STATUS_ACCEPTED, Ride.STATUS_ONGOING):
            raise InvalidRideStateError("Ride is not active")

        store.save_ride(
            ride,
            status=Ride.STATUS_COMPLETED,
            completed_at=timezone.now(),
            **ACCEPTANCE_CLEARED,
        )

    logger.info("Rider %s completed ride %s", rider.id, ride.id)
    return RideResult(success=True, ride=ride, message="Ride completed")


def get_rider_rides(rider, store: Optional[RideStore] = None):
    """Rides this rider accepted, newest first."""
    ensure_role(rider, ROLE_RIDER)
    store = store or default_store
    return store.rides_for_rider(rider)


# ===================== Shared =====================

def get_ride_detail(user, ride_id: int, store: Optional[RideStore] = None) -> Ride:
    """Expanded ride for anyone related to it, and for admins."""
    ensure_role(user, ROLE_PASSENGER, ROLE_RIDER, ROLE_ADMIN)
    store = store or default_store

    ride = store.get_ride_expanded(ride_id)
    if user.role != ROLE_ADMIN and not store.is_related(ride, user.id):
        raise RideForbiddenError("You are not related to this ride")
    return ride
