"""
apps.py: app configuration with signal registration
"""
from django.apps import AppConfig


class FederationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name               = "federation"
    verbose_name       = "Pickleball Sports Federation"

    def ready(self):
        import federation.signals  # noqa: F401  ← registers all signals
