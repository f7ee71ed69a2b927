from django.apps import AppConfig

class CommunicationConfig(AppConfig):
    """AppConfig for announcements and discussions."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningManagementApp.communication"
