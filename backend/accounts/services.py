"""Account operations kept out of the views: token issuing and profile photo handling."""

import logging

from django.db import transaction
from rest_framework_simplejwt.tokens import RefreshToken

from . import media
from .tasks import delete_profile_photo_task

logger = logging.getLogger(__name__)


def issue_tokens(user) -> dict:
    """Refresh/access pair. The role travels in the payload so clients can route on it."""
    refresh = RefreshToken.for_user(user)
    refresh["role"] = user.role
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


def _schedule_photo_delete(name):
    transaction.on_commit(lambda: delete_profile_photo_task.delay(name))


@transaction.atomic
def replace_profile_photo(user, uploaded_file):
    """Store a new profile photo and schedule removal of the previous one."""
    old_name = user.profile_photo.name if user.profile_photo else None

    user.profile_photo.save(media.photo_filename(user, uploaded_file.name), uploaded_file, save=False)
    user.save(update_fields=["profile_photo"])
    logger.info("User %s uploaded profile photo %s", user.id, user.profile_photo.name)

    if old_name:
        _schedule_photo_delete(old_name)
    return user


@transaction.atomic
def remove_profile_photo(user) -> bool:
    """Clear the profile photo. Returns False when the user had none."""
    if not user.profile_photo:
        return False
    old_name = user.profile_photo.name
    user.profile_photo = None
    user.save(update_fields=["profile_photo"])
    _schedule_photo_delete(old_name)
    return True
