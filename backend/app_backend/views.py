import redis
from django.conf import settings
from django.db import connection
from django.utils import timezone
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status

from app_backend.celery import app as celery_app

PHOTO_CLEANUP_TASK = "accounts.tasks.delete_profile_photo_task"


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def _check_redis():
    redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3).ping()


def _check_celery():
    celery_app.loader.import_default_modules()
    if PHOTO_CLEANUP_TASK not in celery_app.tasks:
        raise RuntimeError("task not registered")


CHECKS = {
    "database": _check_database,
    "redis": _check_redis,
    "celery": _check_celery,
}


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health_check(request):
    """Health check endpoint for monitoring system status"""

    health_status = {
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "services": {}
    }

    for name, check in CHECKS.items():
        try:
            check()
            health_status["services"][name] = "healthy"
        except Exception as e:
            health_status["services"][name] = f"unhealthy: {e}"
            health_status["status"] = "unhealthy"

    status_code = (
        status.HTTP_200_OK
        if health_status["status"] == "healthy"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )

    return Response(health_status, status=status_code)
