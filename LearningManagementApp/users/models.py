from django.contrib.auth.models import AbstractUser
from django.db import models

from LearningManagementApp.core.choices import UserRole

class User(AbstractUser):
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=32, choices=UserRole.choices, default=UserRole.STUDENT)
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or self.role == UserRole.ADMIN

    def __str__(self) -> str:
        return self.get_full_name() or self.email
