"""Celery application for background dispatch tasks."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fixme_backend.settings.settings")

app = Celery("fixme_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
