"""
Post-ride ratings.

A rating is a bare 1-5 integer from one ride member to another. Rater and
ratee must both be related to the ride (creator, joined participant or the
assigned rider) and the ride must be COMPLETED. Self ratings and repeat
ratings of the same person on the same ride are allowed.
"""

import logging
from typing import Optional

from common.permissions import ensure_role, ROLE_PASSENGER, ROLE_RIDER
from rides.models import Ride, Rating
from .store import RideStore, default_store
from .exceptions import (
    InvalidRideStateError,
    RideForbiddenError,
    RateeNotRelatedError,
    RideValidationError,
)

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_score(score) -> int:
    """Reject anything but an integer in [1, 5]."""
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_RATING <= score <= MAX_RATING:
        raise RideValidationError(
            errors={"rating": [f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}."]}
        )
    return score


def rate_ride(rater, ride_id: int, ratee_id: int, score: int, store: Optional[RideStore] = None) -> Rating:
    """
    Store a rating from `rater` to `ratee_id` for a completed ride.

    Raises:
        RideValidationError: score outside 1-5 (checked before any store access)
        RideNotFoundError: no such ride
        InvalidRideStateError: ride not COMPLETED
        RideForbiddenError: rater not related to the ride
        RateeNotRelatedError: ratee not related to the ride
    """
    ensure_role(rater, ROLE_PASSENGER, ROLE_RIDER)
    score = validate_score(score)
    store = store or default_store

    ride = store.get_ride(ride_id)

    if ride.status != Ride.STATUS_COMPLETED:
        raise InvalidRideStateError("Can rate only after completion")

    if not store.is_related(ride, rater.id):
        raise RideForbiddenError("You are not related to this ride")

    if not store.is_related(ride, ratee_id):
        raise RateeNotRelatedError()

    rating = store.create_rating(ride=ride, rater=rater, ratee_id=ratee_id, rating=score)
    logger.info("User %s rated user %s %s/5 on ride %s", rater.id, ratee_id, score, ride.id)
    return rating
