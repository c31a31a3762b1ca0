"""
Ride persistence gateway.

The lifecycle engine never touches the ORM directly; it goes through a
`RideStore`. Besides plain reads and writes the store provides the two
primitives ride correctness depends on:

    - `compare_and_set`: an UPDATE restricted to the expected prior status,
      so exactly one of several racing writers sees a row change.
    - `add_participant`: an INSERT backed by the (ride, passenger) unique
      constraint, so a duplicate join turns into AlreadyJoinedError.

Transaction boundaries are explicit: callers open `store.atomic()` and lock
the ride row with `for_update=True` when they must re-check state before
writing.
"""

import logging
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, F
from django.utils import timezone

from rides.models import Ride, RideParticipant, Rating
from .exceptions import RideNotFoundError, AlreadyJoinedError

logger = logging.getLogger(__name__)


def _with_listing_relations(qs):
    """Everything RideSerializer reads, loaded up front: one query for the whole list."""
    return qs.annotate(participant_count=Count("participants")).select_related(
        "passenger", "rider", "rider__rider_profile"
    )


class RideStore:
    """Django ORM backed store for rides, participants and ratings."""

    def atomic(self):
        return transaction.atomic()

    # ---------------------- Rides ----------------------

    def get_ride(self, ride_id, for_update: bool = False) -> Ride:
        qs = Ride.objects.all()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(id=ride_id)
        except (Ride.DoesNotExist, ValueError):
            raise RideNotFoundError()

    def get_ride_by_code(self, code: str, for_update: bool = False) -> Ride:
        qs = Ride.objects.all()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(shared_code=code)
        except Ride.DoesNotExist:
            raise RideNotFoundError("Shared ride not found")

    def get_ride_expanded(self, ride_id) -> Ride:
        """Ride with creator, rider and participants loaded for serialization."""
        try:
            return (
                Ride.objects
                .select_related("passenger", "rider", "rider__rider_profile")
                .prefetch_related("participants__passenger")
                .get(id=ride_id)
            )
        except Ride.DoesNotExist:
            raise RideNotFoundError()

    def ride_exists(self, ride_id) -> bool:
        return Ride.objects.filter(id=ride_id).exists()

    def shared_code_exists(self, code: str) -> bool:
        return Ride.objects.filter(shared_code=code).exists()

    def create_ride(self, **fields) -> Ride:
        """Insert a ride. IntegrityError (e.g. shared code taken) propagates to the caller."""
        with transaction.atomic():
            return Ride.objects.create(**fields)

    def save_ride(self, ride: Ride, **changes) -> Ride:
        """Apply `changes` to an already loaded (and normally locked) ride."""
        for field, value in changes.items():
            setattr(ride, field, value)
        ride.save(update_fields=[*changes.keys(), "updated_at"])
        return ride

    def compare_and_set(self, ride_id, expected_statuses: Iterable[str], **changes) -> bool:
        """
        Update the ride only if its status is still one of `expected_statuses`.

        Returns True when this call changed the row, False when the ride is
        missing or another request moved it first.
        """
        changes.setdefault("updated_at", timezone.now())
        updated = Ride.objects.filter(
            id=ride_id,
            status__in=list(expected_statuses),
        ).update(**changes)
        return updated == 1

    def available_rides(self, ride_type: str):
        """PENDING rides of a type, oldest first. Full shared rides are left out."""
        qs = _with_listing_relations(
            Ride.objects.filter(ride_type=ride_type, status=Ride.STATUS_PENDING)
        )
        if ride_type == Ride.TYPE_SHARED:
            qs = qs.filter(capacity__gt=F("participant_count"))
        return qs.order_by("created_at", "id")

    def rides_for_rider(self, rider):
        return _with_listing_relations(Ride.objects.filter(rider=rider)).order_by("-created_at", "-id")

    def all_rides(self):
        return _with_listing_relations(Ride.objects.all()).order_by("-created_at", "-id")

    def count_rides(self, **filters) -> int:
        return Ride.objects.filter(**filters).count()

    def count_rides_by_status(self) -> dict:
        rows = Ride.objects.order_by().values("status").annotate(total=Count("id"))
        return {row["status"]: row["total"] for row in rows}

    # ---------------------- Participants ----------------------

    def add_participant(self, ride: Ride, passenger) -> RideParticipant:
        try:
            with transaction.atomic():
                return RideParticipant.objects.create(ride=ride, passenger=passenger)
        except IntegrityError:
            logger.warning("Duplicate participant insert for ride %s passenger %s", ride.id, passenger.id)
            raise AlreadyJoinedError()

    def remove_participant(self, ride: Ride, passenger) -> bool:
        deleted, _ = RideParticipant.objects.filter(ride=ride, passenger=passenger).delete()
        return deleted > 0

    def count_participants(self, ride: Ride) -> int:
        return RideParticipant.objects.filter(ride=ride).count()

    def is_participant(self, ride: Ride, user_id) -> bool:
        return RideParticipant.objects.filter(ride=ride, passenger_id=user_id).exists()

    def participations_for_passenger(self, passenger):
        return (
            RideParticipant.objects.filter(passenger=passenger)
            .select_related("ride", "ride__passenger", "ride__rider", "ride__rider__rider_profile")
            .order_by("-joined_at")
        )

    def is_related(self, ride: Ride, user_id: Optional[int]) -> bool:
        """Creator, joined participant or assigned rider."""
        if user_id is None:
            return False
        if ride.passenger_id == user_id or ride.rider_id == user_id:
            return True
        return self.is_participant(ride, user_id)

    # ---------------------- Ratings ----------------------

    def create_rating(self, **fields) -> Rating:
        return Rating.objects.create(**fields)


default_store = RideStore()
