"""
Role-based access policy.

`is_role_allowed` is the single decision point; the DRF permission classes and
the service-layer `ensure_role` guard both delegate to it.
"""

from rest_framework.permissions import BasePermission

from .exceptions import ForbiddenError, UnauthenticatedError

ROLE_PASSENGER = "passenger"
ROLE_RIDER = "rider"
ROLE_ADMIN = "admin"

ALL_ROLES = (ROLE_PASSENGER, ROLE_RIDER, ROLE_ADMIN)


def is_role_allowed(role, allowed_roles) -> bool:
    """Return True when `role` is one of `allowed_roles`. No role is never allowed."""
    if not role:
        return False
    return role in allowed_roles


def ensure_role(user, *allowed_roles):
    """Raise unless `user` is authenticated and holds one of `allowed_roles`."""
    if user is None or not getattr(user, "is_authenticated", False):
        raise UnauthenticatedError()
    if not is_role_allowed(getattr(user, "role", None), allowed_roles):
        raise ForbiddenError("Your role is not allowed to perform this action")
    return user


class HasRole(BasePermission):
    """
    Allows access only to authenticated users whose role is in `allowed_roles`.
    Subclass and set `allowed_roles`.
    """
    allowed_roles = ()

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return is_role_allowed(getattr(user, "role", None), self.allowed_roles)


class IsPassenger(HasRole):
    allowed_roles = (ROLE_PASSENGER,)


class IsRider(HasRole):
    allowed_roles = (ROLE_RIDER,)


class IsAdmin(HasRole):
    allowed_roles = (ROLE_ADMIN,)


class IsRideMember(HasRole):
    """Passengers and riders: the roles that can be related to a ride."""
    allowed_roles = (ROLE_PASSENGER, ROLE_RIDER)
