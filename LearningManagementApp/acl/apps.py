from django.apps import AppConfig

class AclConfig(AppConfig):
    """AppConfig for per-object access control entries."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningManagementApp.acl"
