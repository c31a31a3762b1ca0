"""Celery tasks for account-related background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def delete_profile_photo_task(name: str):
    """
    Delete a replaced or removed profile photo from media storage.

    Scheduled after the database change commits so a rolled back upload
    never loses the previous file.
    """
    from accounts.media import delete_photo_file

    try:
        return delete_photo_file(name)
    except Exception as e:
        logger.error(f"Error deleting profile photo {name}: {e}")
        raise
