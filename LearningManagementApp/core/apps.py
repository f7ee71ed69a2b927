"""Core app configuration and startup checks (like libmagic availability)."""

from django.apps import AppConfig
from django.core.checks import register, Error

class CoreConfig(AppConfig):
    """AppConfig registering a system check for libmagic presence."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningManagementApp.core"

    def ready(self):
        """Register a Django system check to ensure upload sniffing works."""
        @register()
        def libmagic_check(app_configs, **kwargs):
            try:
                import magic
                magic.from_buffer(b"%PDF-1.4\n", mime=True)
            except Exception as exc:
                return [Error(f"libmagic not available: {exc}", id="core.E001")]
            return []
