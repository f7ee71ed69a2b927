"""Serializers for registration, the current user and administrative user management."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from LearningManagementApp.core.choices import UserRole

User = get_user_model()

MIN_PASSWORD_LENGTH = 8


class RegistrationSerializer(serializers.ModelSerializer):
    """Serializer handling user registration with role validation."""
    password = serializers.CharField(
        write_only=True, min_length=MIN_PASSWORD_LENGTH, help_text="User password (write-only)."
    )
    role = serializers.ChoiceField(choices=UserRole.choices, default=UserRole.STUDENT)

    class Meta:
        model = User
        fields = ["id", "email", "password", "first_name", "last_name", "role"]

    def validate_role(self, value: str) -> str:
        """Only administrators may register anything other than students."""
        request = self.context.get("request")
        caller = getattr(request, "user", None)
        if value != UserRole.STUDENT and not (caller and caller.is_authenticated and caller.is_admin):
            raise serializers.ValidationError("Only administrators can register non-student accounts.")
        return value

    def create(self, validated: dict) -> User:
        """Create and return a new user instance."""
        user = User(
            email=validated["email"],
            first_name=validated.get("first_name", ""),
            last_name=validated.get("last_name", ""),
            role=validated["role"],
            username=validated["email"],
        )
        user.set_password(validated["password"])
        user.save()
        return user


class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""

    class Meta:
        model = User
        fields = ["id", "email", "first_name", "last_name", "role"]


class AdminUserReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "username", "first_name", "last_name", "role", "is_active", "date_joined"]


class AdminUserWriteSerializer(serializers.ModelSerializer):
    """Create/update payload for administrators; password needs a matching confirmation."""
    password = serializers.CharField(write_only=True, required=False, min_length=MIN_PASSWORD_LENGTH)
    password_confirmation = serializers.CharField(write_only=True, required=False)
    role = serializers.ChoiceField(choices=UserRole.choices)

    class Meta:
        model = User
        fields = ["email", "username", "first_name", "last_name", "role", "is_active", "password", "password_confirmation"]
        extra_kwargs = {"username": {"required": False}}

    def validate_email(self, value: str) -> str:
        qs = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate(self, data):
        password = data.get("password")
        if self.instance is None and not password:
            raise serializers.ValidationError({"password": ["This field is required."]})
        if password and password != data.get("password_confirmation"):
            raise serializers.ValidationError({"password_confirmation": ["Passwords do not match."]})
        data.pop("password_confirmation", None)
        return data
