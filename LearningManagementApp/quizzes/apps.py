from django.apps import AppConfig

class QuizzesConfig(AppConfig):
    """AppConfig for quizzes, questions and attempts."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "LearningManagementApp.quizzes"
