import logging

from django.db import transaction

from common.exceptions import NotFoundError
from common.permissions import ensure_role, ROLE_RIDER
from riders.models import RiderProfile
from rides.models import Ride

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (Ride.STATUS_ACCEPTED, Ride.STATUS_ONGOING)


def get_rider_profile(user) -> RiderProfile:
    """Vehicle profile of a rider. Every registered rider has one."""
    ensure_role(user, ROLE_RIDER)
    try:
        return user.rider_profile
    except RiderProfile.DoesNotExist:
        raise NotFoundError("Rider profile not found")


@transaction.atomic
def update_rider_profile(profile: RiderProfile, license_number=None, license_plate=None) -> RiderProfile:
    """Update licence details. Plates are stored upper-cased."""
    changed = []
    if license_number is not None:
        profile.license_number = license_number
        changed.append("license_number")
    if license_plate is not None:
        profile.license_plate = license_plate.upper()
        changed.append("license_plate")

    if changed:
        profile.save(update_fields=changed)
        logger.info("Rider %s updated %s", profile.user_id, ", ".join(changed))

    return profile


def current_ride(user):
    """The ride this rider is driving right now, if any."""
    ensure_role(user, ROLE_RIDER)
    return (
        Ride.objects.filter(rider=user, status__in=ACTIVE_STATUSES)
        .select_related("passenger")
        .prefetch_related("participants__passenger")
        .order_by("-accepted_at")
        .first()
    )
