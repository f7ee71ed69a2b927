"""Serializers for the role-specific dashboard payloads."""

from rest_framework import serializers

from LearningManagementApp.api.serializers.communication import AnnouncementReadSerializer
from LearningManagementApp.api.serializers.courses import CourseReadSerializer
from LearningManagementApp.api.serializers.learning import AssignmentReadSerializer


class DeadlineSerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.IntegerField()
    title = serializers.CharField()
    course = serializers.CharField()
    due_date = serializers.DateTimeField()


class DashboardAssignmentSerializer(AssignmentReadSerializer):
    is_submitted = serializers.BooleanField(read_only=True)

    class Meta(AssignmentReadSerializer.Meta):
        fields = AssignmentReadSerializer.Meta.fields + ["is_submitted"]


class StudentDashboardSerializer(serializers.Serializer):
    role = serializers.CharField()
    courses = CourseReadSerializer(many=True)
    upcoming_deadlines = DeadlineSerializer(many=True)
    announcements = AnnouncementReadSerializer(many=True)
    assignments = DashboardAssignmentSerializer(many=True)


class TaughtCourseSerializer(CourseReadSerializer):
    student_count = serializers.IntegerField(read_only=True)

    class Meta(CourseReadSerializer.Meta):
        fields = CourseReadSerializer.Meta.fields + ["student_count"]


class InstructorDashboardSerializer(serializers.Serializer):
    role = serializers.CharField()
    courses = TaughtCourseSerializer(many=True)
    pending_grading = serializers.IntegerField()
