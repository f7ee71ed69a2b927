"""Course domain models: Course and CourseMembership (enrollment)."""

from django.db import models
from django.conf import settings

from simple_history.models import HistoricalRecords

from LearningManagementApp.core.choices import MemberRole, EnrollmentStatus, CourseStatus
from LearningManagementApp.courses.querysets import CourseQuerySet, MembershipQuerySet


User = settings.AUTH_USER_MODEL

class Course(models.Model):
    """A course taught by an instructor that can be public/published and has members.

    Fields:
        title: Human readable course title.
        description: Optional longer text.
        course_code: Unique short code (e.g. "CS101").
        instructor: FK to the user who owns and teaches the course.
        status: CourseStatus value; inactive courses refuse self-enrollment.
        is_public: Whether non-enrolled users may view (when published).
        is_published: Whether the course is open for students.
        created_at / updated_at: Timestamps.
        history: Audit history (django-simple-history).
    """
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    course_code = models.CharField(max_length=20, unique=True)
    instructor = models.ForeignKey(User, on_delete=models.PROTECT, related_name="taught_courses")
    status = models.CharField(max_length=16, choices=CourseStatus.choices, default=CourseStatus.ACTIVE)
    is_public = models.BooleanField(default=False)
    is_published = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = CourseQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.course_code}: {self.title}"

class CourseMembership(models.Model):
    """Enrollment of a user in a course with a role and status.

    Constraints:
        uq_course_user: Prevent duplicate membership rows.
    """
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="course_memberships")
    role = models.CharField(max_length=32, choices=MemberRole.choices)
    status = models.CharField(max_length=16, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE)
    added_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="members_added")
    created_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    objects = MembershipQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "user"], name="uq_course_user"),
        ]

    def __str__(self) -> str:
        return f"{self.user} -> {self.course} ({self.role})"
