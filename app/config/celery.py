"""
Celery configuration for the settlement service.

Runs the settlement background work:
- Replaying stored webhook events
- Re-queueing failed and stuck events
- Reconciling payments whose earnings credit never landed

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps; periodic schedules come
from CELERY_BEAT_SCHEDULE via django-celery-beat.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
