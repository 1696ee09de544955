"""Celery application for background chat sweeps and other deferred work."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "carhire_backend.settings.settings")

app = Celery("carhire_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
