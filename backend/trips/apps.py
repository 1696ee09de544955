"""Trips app configuration."""

from django.apps import AppConfig


class TripsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'trips'

    def ready(self):
        # Broadcast every Trip/UserLocation save to its listeners
        from . import signals  # noqa: F401
