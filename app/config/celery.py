"""
Celery configuration for the Django application.

Two kinds of work run on Celery:
- Story jobs (text generation, cover, audio) consumed from the
  "story-generation" and "story-audio" queues by stories.worker
- Payment housekeeping (webhook event replay, paid-order reconciliation)
  scheduled through django-celery-beat

Redis is the broker. Tasks are auto-discovered from installed apps; the
story worker module is listed explicitly because it is not named tasks.py.

Usage:
    celery -A config worker -Q story-generation,story-audio,celery -c 2
    celery -A config beat --scheduler django_celery_beat.schedulers:DatabaseScheduler

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
app.autodiscover_tasks(["stories"], related_name="worker")
