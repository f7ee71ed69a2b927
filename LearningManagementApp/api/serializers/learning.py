"""Serializers for assignments, submissions, grading and the gradebook."""

from decimal import Decimal

from rest_framework import serializers

from LearningManagementApp.api.serializers.users import UserSerializer
from LearningManagementApp.core.validators import validate_attachment_mime, validate_file_extension, validate_file_size
from LearningManagementApp.domain.services import learning_service
from LearningManagementApp.learning.models import Assignment, Grade, GradeCategory, Submission, SubmissionAttachment


class AssignmentWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating an assignment."""
    is_published = serializers.BooleanField(
        required=False, default=True, write_only=True,
        help_text="Create unpublished (hidden from students) when false.",
    )

    class Meta:
        model = Assignment
        fields = [
            "title", "description", "module", "category", "due_date", "points", "submission_type",
            "allow_late_submissions", "is_published",
        ]


class AssignmentReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = [
            "id", "course", "module", "category", "title", "description", "due_date", "points", "submission_type",
            "allow_late_submissions", "created_by", "created_at", "updated_at",
        ]


class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = SubmissionAttachment
        fields = ["id", "file", "file_name", "file_size", "uploaded_at"]


class SubmissionWriteSerializer(serializers.Serializer):
    """Serializer for creating/updating a submission (multipart for files)."""
    content_text = serializers.CharField(
        required=False, allow_blank=True, max_length=50000,
        help_text="Textual answer (required for TEXT assignments).",
    )
    submission_url = serializers.URLField(required=False, allow_blank=True, max_length=2048)
    files = serializers.ListField(
        child=serializers.FileField(), required=False, allow_empty=True,
        help_text="Attachments; size/extension/type validated.",
    )
    remove_attachment_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False, allow_empty=True,
        help_text="Attachments to drop when resubmitting.",
    )

    def validate_files(self, files: list) -> list:
        """Validate attachment size, extension and MIME."""
        for upload in files:
            validate_file_size(upload)
            validate_file_extension(upload)
            validate_attachment_mime(upload)
        return files


class SubmissionReadSerializer(serializers.ModelSerializer):
    """Detailed submission view including attachments, grade and lateness penalty."""
    student = UserSerializer(read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    graded_by = UserSerializer(read_only=True)
    days_late = serializers.SerializerMethodField()
    penalty_applied = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = [
            "id", "assignment", "student", "content_text", "submission_url", "attachments",
            "status", "is_late", "days_late", "penalty_applied", "submitted_at", "updated_at",
            "grade", "feedback", "graded_at", "graded_by",
        ]

    def get_days_late(self, obj: Submission) -> int:
        return learning_service.days_late(obj.assignment.due_date, obj.submitted_at)

    def get_penalty_applied(self, obj: Submission) -> float:
        return learning_service.late_penalty(self.get_days_late(obj))


class GradeWriteSerializer(serializers.Serializer):
    """Grade value and feedback for a submission."""
    grade = serializers.DecimalField(max_digits=7, decimal_places=2, min_value=Decimal("0"))
    feedback = serializers.CharField(required=False, allow_blank=True, default="", max_length=10000)


class BulkGradeSerializer(GradeWriteSerializer):
    submission_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class GradeHistorySerializer(serializers.Serializer):
    history_id = serializers.IntegerField()
    grade = serializers.DecimalField(max_digits=7, decimal_places=2)
    feedback = serializers.CharField()
    graded_at = serializers.DateTimeField()
    graded_by = serializers.IntegerField(allow_null=True)


class GradeCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = GradeCategory
        fields = ["id", "name", "weight"]


class GradeSerializer(serializers.ModelSerializer):
    item = serializers.SerializerMethodField()
    percentage = serializers.FloatField(read_only=True)

    class Meta:
        model = Grade
        fields = [
            "id", "item", "assignment", "quiz", "category", "points_earned", "points_possible",
            "percentage", "letter_grade", "comments", "graded_by", "updated_at",
        ]

    def get_item(self, obj: Grade) -> str:
        target = obj.assignment or obj.quiz
        return target.title if target else ""


class GradebookRowSerializer(serializers.Serializer):
    student = UserSerializer()
    grades = GradeSerializer(many=True)
    summary = serializers.DictField()
