"""Serializers for courses and course memberships."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from LearningManagementApp.api.serializers.users import UserSerializer
from LearningManagementApp.courses.models import Course, CourseMembership

User = get_user_model()


class CourseWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a course."""
    instructor = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), required=False,
        help_text="Instructor user id (administrators only; defaults to the caller).",
    )

    class Meta:
        model = Course
        fields = ["title", "description", "course_code", "status", "is_public", "is_published", "instructor"]


class CourseReadSerializer(serializers.ModelSerializer):
    """Serializer for reading course details including the instructor."""
    instructor = UserSerializer()

    class Meta:
        model = Course
        fields = [
            "id", "title", "description", "course_code", "status", "is_public", "is_published",
            "instructor", "created_at", "updated_at",
        ]


class MembershipWriteSerializer(serializers.Serializer):
    """Serializer to add a member to a course."""
    user_id = serializers.IntegerField()


class MembershipReadSerializer(serializers.ModelSerializer):
    user = UserSerializer()

    class Meta:
        model = CourseMembership
        fields = ["id", "user", "role", "status", "created_at"]


class StudentSyncSerializer(serializers.Serializer):
    """Full list of student ids the course should contain."""
    student_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)

    def validate_student_ids(self, value: list[int]) -> list[int]:
        found = set(User.objects.filter(pk__in=value).values_list("pk", flat=True))
        missing = sorted(set(value) - found)
        if missing:
            raise serializers.ValidationError(f"Unknown user ids: {missing}")
        return value
