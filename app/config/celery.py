"""
Celery configuration for the Django application.

Celery runs the checkout maintenance jobs:
- Expiring abandoned checkout sessions
- Cleaning up old gateway notifications

Schedules live in CELERY_BEAT_SCHEDULE (config/settings.py) and are
synced into django-celery-beat's database scheduler. Tasks are
auto-discovered from all installed Django apps.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

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

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
