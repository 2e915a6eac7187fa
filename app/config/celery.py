"""
Celery configuration for the settlement and escrow service.

Celery runs the background side of the engine:
- Scheduled auto-release of escrow holds whose work was completed
- Vendor transfers for holds released by the scheduler

Redis is both the message broker and result backend. Tasks are
auto-discovered from the tasks.py module of every installed app, and the
periodic schedule lives in the database (django-celery-beat).

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
