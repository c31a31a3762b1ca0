"""
Admin reporting: user and ride listings plus headline counts.
"""

from typing import Optional

from django.contrib.auth import get_user_model

from common.exceptions import InputValidationError
from common.permissions import ensure_role, ROLE_ADMIN, ROLE_PASSENGER, ROLE_RIDER, ALL_ROLES
from rides.models import Ride
from services.ride_management import RideStore, default_store

User = get_user_model()


def list_users(admin, role: Optional[str] = None):
    """All users newest first, optionally narrowed to one role."""
    ensure_role(admin, ROLE_ADMIN)

    qs = User.objects.select_related("rider_profile").order_by("-date_joined")
    if role:
        if role not in ALL_ROLES:
            raise InputValidationError(errors={"role": [f"Must be one of: {', '.join(ALL_ROLES)}"]})
        qs = qs.filter(role=role)
    return qs


def list_rides(admin, store: Optional[RideStore] = None):
    ensure_role(admin, ROLE_ADMIN)
    store = store or default_store
    return store.all_rides()


def stats(admin, store: Optional[RideStore] = None) -> dict:
    """Headline counts. Every ride status is present, zero when unused."""
    ensure_role(admin, ROLE_ADMIN)
    store = store or default_store

    by_status = {value: 0 for value, _ in Ride.STATUS_CHOICES}
    by_status.update(store.count_rides_by_status())

    return {
        "total_riders": User.objects.filter(role=ROLE_RIDER).count(),
        "total_passengers": User.objects.filter(role=ROLE_PASSENGER).count(),
        "total_rides": store.count_rides(),
        "rides_by_status": by_status,
    }
