"""
Stories app configuration.

This app provides:
- Child profiles that stories are written for
- Story requests that reserve credits and queue a generation job
- The job worker: text generation, cover art and narration
"""

from django.apps import AppConfig


class StoriesConfig(AppConfig):
    """Configuration for the stories application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "stories"
    verbose_name = "Stories"
