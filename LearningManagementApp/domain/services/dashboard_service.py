"""Role-specific dashboard summaries."""

from typing import Any

from django.db.models import Count, Exists, OuterRef, Q
from django.utils import timezone

from LearningManagementApp.communication.models import Announcement
from LearningManagementApp.core.choices import EnrollmentStatus, MemberRole, PermissionType, UserRole
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.domain.services import acl_service
from LearningManagementApp.learning.models import Assignment, Submission
from LearningManagementApp.quizzes.models import Quiz

RECENT_ANNOUNCEMENTS = 5
UPCOMING_DEADLINES = 10


def student_dashboard(user: User) -> dict[str, Any]:
    """Enrolled courses, upcoming deadlines, recent announcements and assignment progress."""
    now = timezone.now()
    courses = Course.objects.where_enrolled(user).order_by("title")
    assignments = acl_service.accessible_queryset(
        Assignment.objects.for_student(user).select_related("course"), user, PermissionType.VIEW
    ).annotate(
        is_submitted=Exists(Submission.objects.filter(assignment=OuterRef("pk"), student=user))
    ).order_by("due_date")
    quizzes = acl_service.accessible_queryset(
        Quiz.objects.filter(course__in=courses, close_date__gte=now).select_related("course"),
        user, PermissionType.VIEW,
    )
    deadlines = [
        {"type": "assignment", "id": a.pk, "title": a.title, "course": a.course.title, "due_date": a.due_date}
        for a in assignments if a.due_date >= now
    ] + [
        {"type": "quiz", "id": q.pk, "title": q.title, "course": q.course.title, "due_date": q.close_date}
        for q in quizzes
    ]
    deadlines.sort(key=lambda item: item["due_date"])
    announcements = acl_service.accessible_queryset(
        Announcement.objects.filter(course__in=courses).select_related("course", "author"),
        user, PermissionType.VIEW,
    ).order_by("-created_at", "-id")[:RECENT_ANNOUNCEMENTS]
    return {
        "role": user.role,
        "courses": list(courses),
        "upcoming_deadlines": deadlines[:UPCOMING_DEADLINES],
        "announcements": list(announcements),
        "assignments": list(assignments),
    }


def instructor_dashboard(user: User) -> dict[str, Any]:
    """Taught courses with student counts and the submissions still waiting for a grade."""
    taught = Course.objects.filter(
        Q(instructor=user) |
        Q(memberships__user=user, memberships__role__in=[MemberRole.INSTRUCTOR, MemberRole.TEACHING_ASSISTANT],
          memberships__status=EnrollmentStatus.ACTIVE)
    ).values("pk")
    courses = Course.objects.filter(pk__in=taught).annotate(
        student_count=Count(
            "memberships",
            filter=Q(memberships__role=MemberRole.STUDENT, memberships__status=EnrollmentStatus.ACTIVE),
            distinct=True,
        )
    ).order_by("title")
    pending = Submission.objects.for_staff(user).pending().count()
    return {
        "role": user.role,
        "courses": list(courses),
        "pending_grading": pending,
    }


def dashboard_for(user: User) -> dict[str, Any]:
    if user.is_admin or user.role in (UserRole.INSTRUCTOR, UserRole.TEACHING_ASSISTANT):
        return instructor_dashboard(user)
    return student_dashboard(user)
