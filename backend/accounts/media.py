"""
Profile photo storage.

Files go through Django's default storage backend (local disk in development,
whatever `STORAGES["default"]` points at in production).
"""

import logging
import os
import uuid

from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)


def photo_filename(user, original_name: str) -> str:
    """Build a unique storage name for a user's photo, keeping the extension."""
    ext = os.path.splitext(original_name or "")[1].lower() or ".png"
    return f"user_{user.id}_{uuid.uuid4().hex[:8]}{ext}"


def photo_url(user, request=None):
    """Absolute URL for the user's photo, or None when no photo is set."""
    if not user.profile_photo:
        return None
    url = user.profile_photo.url
    if request is not None:
        return request.build_absolute_uri(url)
    return url


def delete_photo_file(name: str) -> bool:
    """Delete a stored photo by storage name. Returns False if it was already gone."""
    if not name or not default_storage.exists(name):
        logger.info("Profile photo %s already removed", name)
        return False
    default_storage.delete(name)
    logger.info("Deleted profile photo %s", name)
    return True
