from django.apps import AppConfig

class ContentConfig(AppConfig):
    """AppConfig for course modules, module resources and pages."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningManagementApp.content"
