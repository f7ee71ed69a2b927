"""Learning domain models: Assignment, Submission, SubmissionAttachment, GradeCategory, Grade."""

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator

from LearningManagementApp.acl.mixins import AclProtectedModel
from LearningManagementApp.courses.models import Course
from LearningManagementApp.content.models import CourseModule
from LearningManagementApp.core.choices import SubmissionState, SubmissionType
from LearningManagementApp.core.validators import validate_file_size, validate_file_extension, validate_attachment_mime
from LearningManagementApp.learning.querysets import AssignmentQuerySet, SubmissionQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL

class Assignment(AclProtectedModel):
    """Graded coursework with a due date and an accepted submission type."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="assignments")
    module = models.ForeignKey(CourseModule, on_delete=models.SET_NULL, null=True, blank=True, related_name="assignments")
    category = models.ForeignKey(
        "GradeCategory", on_delete=models.SET_NULL, null=True, blank=True, related_name="assignments"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    due_date = models.DateTimeField()
    points = models.DecimalField(max_digits=7, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    submission_type = models.CharField(max_length=8, choices=SubmissionType.choices, default=SubmissionType.BOTH)
    allow_late_submissions = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_assignments")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    def __str__(self) -> str:
        return self.title


class Submission(models.Model):
    """A student's submission for an assignment (unique per assignment+student)."""
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    content_text = models.TextField(blank=True, max_length=50000)
    submission_url = models.URLField(blank=True, max_length=2048)
    status = models.CharField(max_length=16, choices=SubmissionState.choices, default=SubmissionState.SUBMITTED)
    is_late = models.BooleanField(default=False)
    submitted_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)
    grade = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)
    feedback = models.TextField(blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="graded_submissions")
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
        ]

    def __str__(self) -> str:
        return f"Submission({self.student_id} -> {self.assignment_id}, {self.status})"


class SubmissionAttachment(models.Model):
    """An uploaded file belonging to a submission."""
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="attachments")
    file = models.FileField(
        upload_to="submissions/",
        validators=[validate_file_size, validate_file_extension, validate_attachment_mime],
    )
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)


class GradeCategory(models.Model):
    """Weighted bucket of gradebook rows (e.g. "Homework 40%")."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="grade_categories")
    name = models.CharField(max_length=100)
    weight = models.DecimalField(
        max_digits=5, decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "name"], name="uq_grade_category_name"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.weight}%)"


class Grade(models.Model):
    """A gradebook row for one student and one graded item (assignment or quiz)."""
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="grades")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="grades")
    category = models.ForeignKey(GradeCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name="grades")
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, null=True, blank=True, related_name="grades")
    quiz = models.ForeignKey("quizzes.Quiz", on_delete=models.CASCADE, null=True, blank=True, related_name="grades")
    points_earned = models.DecimalField(max_digits=7, decimal_places=2)
    points_possible = models.DecimalField(max_digits=7, decimal_places=2)
    letter_grade = models.CharField(max_length=2, blank=True)
    comments = models.TextField(blank=True)
    graded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="assigned_grades")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["student", "assignment"], condition=Q(assignment__isnull=False),
                name="uq_grade_student_assignment",
            ),
            models.UniqueConstraint(
                fields=["student", "quiz"], condition=Q(quiz__isnull=False),
                name="uq_grade_student_quiz",
            ),
        ]

    @property
    def percentage(self) -> float | None:
        if not self.points_possible:
            return None
        return round(float(self.points_earned) / float(self.points_possible) * 100, 2)
