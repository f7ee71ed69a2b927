"""Domain service functions for assignments, submissions, and grading.

Enforces role/visibility rules:
- Only course instructors (or administrators) create and change assignments.
- Course staff (instructors, teaching assistants) grade submissions.
- Enrolled students submit once and then resubmit through the update path.
State transitions for submissions:
    SUBMITTED | LATE -> RESUBMITTED (on resubmission) -> GRADED (after grading).
A resubmission clears the previous grade; late work is flagged, and the late
penalty is reported as a percentage (default 10% per day, capped at 50%).
"""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import Avg, Count, Q, QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningManagementApp.core import access
from LearningManagementApp.core.choices import PermissionType, SubmissionState, SubmissionType
from LearningManagementApp.core.exceptions import Conflict, UnprocessableEntity
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.domain.services import acl_service, content_service, gradebook_service
from LearningManagementApp.learning.models import Assignment, Submission, SubmissionAttachment

logger = logging.getLogger(__name__)


def _ensure_instructor(user: User, course: Course) -> None:
    """Ensure user is an administrator or instructor of course."""
    if not access.can_manage_course(user, course):
        raise PermissionDenied("Instructor role required")

def _ensure_grader(user: User, course: Course) -> None:
    """Ensure user may grade work in course (administrator, instructor or teaching assistant)."""
    if not (access.is_admin(user) or access.is_course_staff(user, course)):
        raise PermissionDenied("Instructor or teaching assistant role required")

def _ensure_student(user: User, course: Course) -> None:
    """Ensure user is an active student of course."""
    if not access.is_student(user, course):
        raise PermissionDenied("You are not enrolled in this course.")


# ---------- Lateness ----------
def days_late(due_date, submitted_at) -> int:
    """Whole days between the due date and submission; 0 when on time."""
    if not due_date or submitted_at <= due_date:
        return 0
    return (submitted_at - due_date).days

def late_penalty(days: int) -> float:
    """Penalty in percent: `LMS_LATE_PENALTY_PER_DAY` per day, at most `LMS_LATE_PENALTY_MAX`."""
    if days <= 0:
        return 0.0
    per_day = getattr(settings, "LMS_LATE_PENALTY_PER_DAY", 0.10)
    cap = getattr(settings, "LMS_LATE_PENALTY_MAX", 0.50)
    return round(min(days * per_day, cap) * 100, 2)


# ---------- Assignments ----------
def _check_links(course: Course, data: dict[str, Any]) -> None:
    if "module" in data:
        content_service.check_module(course, data["module"])
    if "category" in data:
        gradebook_service.check_category(course, data["category"])

@transaction.atomic
def create_assignment(
    teacher: User,
    course: Course,
    data: dict[str, Any],
    is_published: bool = True,
) -> Assignment:
    """Create an assignment (instructor only) and apply its default ACL."""
    _ensure_instructor(teacher, course)
    _check_links(course, data)
    assignment = Assignment.objects.create(course=course, created_by=teacher, **data)
    acl_service.setup_default_permissions(assignment, publish=is_published)
    logger.info("Assignment %s created in course %s", assignment.pk, course.pk)
    return assignment

@transaction.atomic
def update_assignment(teacher: User, assignment: Assignment, data: dict[str, Any]) -> Assignment:
    """Update an assignment; needs instructor role and MANAGE on it."""
    _ensure_instructor(teacher, assignment.course)
    acl_service.require_permission(teacher, assignment, PermissionType.MANAGE)
    _check_links(assignment.course, data)
    for field, value in data.items():
        setattr(assignment, field, value)
    assignment.save()
    if "category" in data:
        assignment.grades.update(category=assignment.category)
    return assignment

@transaction.atomic
def delete_assignment(teacher: User, assignment: Assignment) -> None:
    _ensure_instructor(teacher, assignment.course)
    acl_service.require_permission(teacher, assignment, PermissionType.MANAGE)
    assignment.delete()

def assignments_for(user: User, course: Course) -> QuerySet[Assignment]:
    """Staff see every assignment of the course; students those they may view."""
    qs = course.assignments.select_related("course").order_by("due_date")
    if access.is_admin(user) or access.is_course_staff(user, course):
        return qs
    return acl_service.accessible_queryset(qs, user, PermissionType.VIEW)


# ---------- Submissions ----------
def _validate_content(assignment: Assignment, text: str, url: str, file_count: int) -> None:
    """Content rules per submission type."""
    kind = assignment.submission_type
    if kind == SubmissionType.TEXT and not text:
        raise ValidationError({"content_text": ["Text content is required for this assignment."]})
    if kind == SubmissionType.FILE and file_count < 1:
        raise ValidationError({"files": ["At least one file is required for this assignment."]})
    if kind == SubmissionType.URL and not url:
        raise ValidationError({"submission_url": ["A URL is required for this assignment."]})
    if kind == SubmissionType.BOTH and not text and file_count < 1:
        raise ValidationError({"content_text": ["Provide text content or at least one file."]})
    max_files = getattr(settings, "LMS_SUBMISSION_MAX_FILES", 10)
    if file_count > max_files:
        raise ValidationError({"files": [f"No more than {max_files} files are allowed."]})

def _attach(submission: Submission, files: Iterable[Any]) -> None:
    for upload in files:
        attachment = SubmissionAttachment(
            submission=submission, file=upload, file_name=upload.name, file_size=upload.size or 0
        )
        attachment.full_clean(exclude=["submission"])
        attachment.save()

@transaction.atomic
def submit(
    student: User,
    assignment: Assignment,
    content_text: str = "",
    submission_url: str = "",
    files: Iterable[Any] = (),
) -> Submission:
    """Create the first submission of a student for an assignment.

    Rules:
        - Student must be actively enrolled and able to view the assignment.
        - Exactly one submission per student; later changes go through ``resubmit``.
        - Content must match the assignment's submission type.
        - Late work is flagged LATE, or refused when late submissions are disallowed.
    """
    course = assignment.course
    _ensure_student(student, course)
    if not acl_service.can_access_based_on_course(student, assignment, PermissionType.VIEW):
        raise PermissionDenied("This assignment is not available.")
    if Submission.objects.filter(assignment=assignment, student=student).exists():
        raise Conflict("You have already submitted this assignment. Use the update endpoint to resubmit.")
    files = list(files)
    _validate_content(assignment, content_text, submission_url, len(files))

    now = timezone.now()
    is_late = now > assignment.due_date
    if is_late and not assignment.allow_late_submissions:
        raise UnprocessableEntity("The due date has passed and late submissions are not accepted.")
    submission = Submission.objects.create(
        assignment=assignment,
        student=student,
        content_text=content_text,
        submission_url=submission_url,
        submitted_at=now,
        is_late=is_late,
        status=SubmissionState.LATE if is_late else SubmissionState.SUBMITTED,
    )
    _attach(submission, files)
    logger.info("Submission %s created (late=%s)", submission.pk, is_late)
    return submission

@transaction.atomic
def resubmit(
    student: User,
    submission: Submission,
    content_text: str | None = None,
    submission_url: str | None = None,
    add_files: Iterable[Any] = (),
    remove_attachment_ids: Iterable[int] = (),
) -> Submission:
    """Replace content of an existing submission; the previous grade is cleared."""
    if submission.student_id != student.pk:
        raise PermissionDenied("You can only update your own submission.")
    assignment = submission.assignment
    _ensure_student(student, assignment.course)
    submission = Submission.objects.select_for_update().get(pk=submission.pk)

    remove_ids = set(remove_attachment_ids)
    if remove_ids:
        submission.attachments.filter(pk__in=remove_ids).delete()
    if content_text is not None:
        submission.content_text = content_text
    if submission_url is not None:
        submission.submission_url = submission_url
    add_files = list(add_files)
    _validate_content(
        assignment, submission.content_text, submission.submission_url,
        submission.attachments.count() + len(add_files),
    )

    now = timezone.now()
    is_late = now > assignment.due_date
    if is_late and not assignment.allow_late_submissions:
        raise UnprocessableEntity("The due date has passed and late submissions are not accepted.")
    _attach(submission, add_files)
    submission.is_late = is_late
    submission.submitted_at = now
    submission.status = SubmissionState.LATE if is_late else SubmissionState.RESUBMITTED
    submission.grade = None
    submission.graded_at = None
    submission.graded_by = None
    submission.save()
    gradebook_service.clear_assignment_grade(submission.student, assignment)
    return submission


# ---------- Grading ----------
@transaction.atomic
def grade_submission(
    teacher: User,
    submission: Submission,
    value: Decimal,
    feedback: str = "",
) -> Submission:
    """Grade a submission (course staff only) and mirror it in the gradebook.

    Validates:
        value within 0 and the assignment's points.
    """
    assignment = submission.assignment
    _ensure_grader(teacher, assignment.course)
    value = Decimal(value)
    if value < 0 or value > assignment.points:
        raise ValidationError({"grade": [f"Grade must be between 0 and {assignment.points}."]})
    submission = Submission.objects.select_for_update().get(pk=submission.pk)
    submission.grade = value
    submission.feedback = feedback
    submission.graded_at = timezone.now()
    submission.graded_by = teacher
    submission.status = SubmissionState.GRADED
    submission.save()
    gradebook_service.record_assignment_grade(submission, teacher)
    logger.info("Submission %s graded %s by %s", submission.pk, value, teacher.pk)
    return submission

@transaction.atomic
def bulk_grade(
    teacher: User,
    course: Course,
    submission_ids: Iterable[int],
    value: Decimal,
    feedback: str = "",
) -> int:
    """Grade many submissions of one course with the same value."""
    _ensure_grader(teacher, course)
    submissions = list(
        Submission.objects.for_course(course).filter(pk__in=list(submission_ids)).select_related("assignment")
    )
    if not submissions:
        raise NotFound("No valid submissions found")
    for submission in submissions:
        grade_submission(teacher, submission, value, feedback)
    return len(submissions)

def list_course_submissions(
    teacher: User,
    course: Course,
    assignment_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
) -> QuerySet[Submission]:
    """Submissions of a course for graders, newest first, with optional filters."""
    _ensure_grader(teacher, course)
    qs = Submission.objects.for_course(course).select_related("student", "assignment", "graded_by")
    if assignment_id:
        qs = qs.filter(assignment_id=assignment_id)
    if status == "graded":
        qs = qs.graded()
    elif status == "pending":
        qs = qs.pending()
    if search:
        qs = qs.search(search)
    return qs.order_by("-submitted_at", "-id")

def grading_statistics(teacher: User, course: Course) -> dict[str, Any]:
    """Per-assignment and overall grading progress for a course."""
    _ensure_grader(teacher, course)
    graded = Q(submissions__status=SubmissionState.GRADED)
    assignments = course.assignments.annotate(
        total=Count("submissions"),
        graded_count=Count("submissions", filter=graded),
        average=Avg("submissions__grade", filter=graded),
    ).order_by("due_date", "id")
    stats = []
    for assignment in assignments:
        average = float(assignment.average) if assignment.average is not None else None
        stats.append({
            "assignment_id": assignment.pk,
            "assignment_title": assignment.title,
            "total_submissions": assignment.total,
            "graded_submissions": assignment.graded_count,
            "pending_submissions": assignment.total - assignment.graded_count,
            "average_grade": round(average, 2) if average is not None else None,
            "average_percentage": (
                round(average / float(assignment.points) * 100, 2)
                if average is not None and assignment.points else None
            ),
        })
    averages = [s["average_grade"] for s in stats if s["average_grade"] is not None]
    return {
        "assignment_stats": stats,
        "overall_stats": {
            "total_assignments": len(stats),
            "total_submissions": sum(s["total_submissions"] for s in stats),
            "total_graded": sum(s["graded_submissions"] for s in stats),
            "average_grade_overall": round(sum(averages) / len(averages), 2) if averages else None,
        },
    }

def grade_history(teacher: User, submission: Submission) -> list[dict[str, Any]]:
    """Every grading event of a submission from its audit trail, newest first."""
    _ensure_grader(teacher, submission.assignment.course)
    history = []
    previous_key = None
    for record in submission.history.filter(graded_at__isnull=False).order_by("history_date", "history_id"):
        key = (record.grade, record.feedback, record.graded_at)
        if key == previous_key:
            continue
        previous_key = key
        history.append({
            "history_id": record.history_id,
            "grade": record.grade,
            "feedback": record.feedback,
            "graded_at": record.graded_at,
            "graded_by": record.graded_by_id,
        })
    history.reverse()
    return history
