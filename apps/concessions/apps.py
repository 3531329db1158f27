# concessions/apps.py

from django.apps import AppConfig


class ConcessionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "concessions"
    verbose_name = "Railway Concessions"

    def ready(self):
        """
        Import signal handlers when the app is ready.
        This ensures signals are connected when Django starts.
        """
        try:
            import concessions.signals  # noqa: F401
        except ImportError:
            pass
