import logging

import redis
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from trips.models import Trip
from chats.tasks import sweep_expired_threads

logger = logging.getLogger(__name__)


class ProbeFailed(Exception):
    pass


def _probe_database():
    Trip.objects.exists()


def _probe_cache():
    # Auto-resume flags for location sharing live here
    cache.set("health_check", "ok", timeout=10)
    if cache.get("health_check") != "ok":
        raise ProbeFailed("read-back mismatch")


def _probe_redis():
    redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3).ping()


def _probe_channels():
    if get_channel_layer() is None:
        raise ProbeFailed("no channel layer")


def _probe_celery():
    if not sweep_expired_threads.name:
        raise ProbeFailed("task not registered")


def _uses_redis():
    return "redis" in settings.CHANNEL_LAYERS["default"]["BACKEND"].lower()


@api_view(["GET"])
@authentication_classes([])
@permission_classes([AllowAny])
def health_check(request):
    """Report each backing service as healthy or unhealthy: <reason>"""
    probes = [("database", _probe_database), ("cache", _probe_cache)]
    if _uses_redis():
        probes.append(("redis", _probe_redis))
    probes += [("channels", _probe_channels), ("celery", _probe_celery)]

    services = {}
    healthy = True
    for name, probe in probes:
        try:
            probe()
            services[name] = "healthy"
        except Exception as e:
            logger.warning("Health probe %s failed: %s", name, e)
            services[name] = f"unhealthy: {e}"
            healthy = False

    return Response(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
    )
