"""Domain service functions for course lifecycle and membership management.

These helpers encapsulate business rules (e.g., only the course instructor or an
administrator can manage membership) and keep view/serializer layers thin. All
mutating operations run inside atomic transactions to ensure consistency of
course and membership state.
"""
import logging
from typing import Any
from collections.abc import Iterable

from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from LearningManagementApp.core import access
from LearningManagementApp.core.choices import MemberRole, EnrollmentStatus, CourseStatus, UserRole
from LearningManagementApp.core.exceptions import UnprocessableEntity
from LearningManagementApp.courses.models import Course, CourseMembership, User

logger = logging.getLogger(__name__)


@transaction.atomic
def create_course(actor: User, data: dict[str, Any]) -> Course:
    """Create a course and auto-enroll its instructor.

    Args:
        actor: Administrator or user with the INSTRUCTOR role.
        data: Validated payload for the Course model. Administrators may pass
            ``instructor`` to assign someone else; otherwise the actor teaches.

    Returns:
        The newly created Course instance.
    """
    if not (actor.is_admin or actor.role == UserRole.INSTRUCTOR):
        raise PermissionDenied("Instructor role required")
    data = dict(data)
    instructor = data.pop("instructor", None) if actor.is_admin else None
    instructor = instructor or actor
    course = Course.objects.create(instructor=instructor, **data)
    CourseMembership.objects.create(
        course=course, user=instructor, role=MemberRole.INSTRUCTOR, added_by=actor
    )
    logger.info("Course %s created by user %s", course.course_code, actor.pk)
    return course


def _ensure_course_manager(user: User, course: Course) -> None:
    """Raise PermissionDenied unless user is an administrator or instructor of the course."""
    if not access.can_manage_course(user, course):
        raise PermissionDenied("Instructor role required")


@transaction.atomic
def update_course(actor: User, course: Course, data: dict[str, Any]) -> Course:
    _ensure_course_manager(actor, course)
    data = dict(data)
    new_instructor = data.pop("instructor", None)
    for field, value in data.items():
        setattr(course, field, value)
    if new_instructor is not None and new_instructor.pk != course.instructor_id:
        if not actor.is_admin:
            raise PermissionDenied("Only administrators can reassign a course.")
        course.instructor = new_instructor
        CourseMembership.objects.update_or_create(
            course=course, user=new_instructor,
            defaults={"role": MemberRole.INSTRUCTOR, "status": EnrollmentStatus.ACTIVE, "added_by": actor},
        )
    course.save()
    return course


@transaction.atomic
def delete_course(actor: User, course: Course) -> None:
    if not actor.is_admin:
        raise PermissionDenied("Access denied. Required role: admin")
    logger.info("Course %s deleted by user %s", course.course_code, actor.pk)
    course.delete()


def _enroll(actor: User, course: Course, user: User, role: str) -> CourseMembership:
    membership, created = CourseMembership.objects.get_or_create(
        course=course,
        user=user,
        defaults={"role": role, "added_by": actor},
    )
    if not created and (membership.role != role or membership.status != EnrollmentStatus.ACTIVE):
        if membership.role == MemberRole.INSTRUCTOR and course.instructor_id == user.pk:
            raise UnprocessableEntity("The course instructor's membership cannot be changed.")
        membership.role = role
        membership.status = EnrollmentStatus.ACTIVE
        membership.save(update_fields=["role", "status"])
    return membership


@transaction.atomic
def add_teaching_assistant(actor: User, course: Course, user: User) -> CourseMembership:
    """Add (or promote) a user as a teaching assistant of the course."""
    _ensure_course_manager(actor, course)
    return _enroll(actor, course, user, MemberRole.TEACHING_ASSISTANT)


@transaction.atomic
def add_student(actor: User, course: Course, student_user: User) -> CourseMembership:
    """Enroll a student in the course (idempotent; reactivates dropped enrollments).

    Args:
        actor: Must be an administrator or instructor of the course.
        course: Target course.
        student_user: User to enroll.

    Returns:
        The (possibly existing) CourseMembership.
    """
    _ensure_course_manager(actor, course)
    membership = _enroll(actor, course, student_user, MemberRole.STUDENT)
    logger.info("User %s enrolled in %s by %s", student_user.pk, course.course_code, actor.pk)
    return membership


@transaction.atomic
def sync_students(actor: User, course: Course, students: Iterable[User]) -> list[CourseMembership]:
    """Make the course's student set exactly ``students``; other student rows are removed."""
    _ensure_course_manager(actor, course)
    students = list(students)
    keep_ids = {student.pk for student in students}
    CourseMembership.objects.filter(course=course, role=MemberRole.STUDENT).exclude(user_id__in=keep_ids).delete()
    memberships = []
    for student in students:
        if access.is_course_staff(student, course):
            continue
        memberships.append(_enroll(actor, course, student, MemberRole.STUDENT))
    return memberships


@transaction.atomic
def remove_member(actor: User, course: Course, member_user: User) -> None:
    """Remove any membership record for the given user from the course.

    Args:
        actor: Must be an administrator or instructor of the course.
        course: Target course.
        member_user: User to remove (assistant or student).
    """
    _ensure_course_manager(actor, course)
    if course.instructor_id == member_user.pk:
        raise UnprocessableEntity("The course instructor cannot be removed.")
    CourseMembership.objects.filter(course=course, user=member_user).delete()


@transaction.atomic
def enroll_self(student: User, course: Course) -> CourseMembership:
    """Self-enrollment into an active, public and published course."""
    if student.role != UserRole.STUDENT:
        raise PermissionDenied("Access denied. Required role: student")
    if not (course.is_public and course.is_published) or course.status != CourseStatus.ACTIVE:
        raise UnprocessableEntity("This course is not open for enrollment.")
    membership, created = CourseMembership.objects.get_or_create(
        course=course, user=student, defaults={"role": MemberRole.STUDENT, "added_by": student},
    )
    if not created and membership.status != EnrollmentStatus.ACTIVE:
        membership.status = EnrollmentStatus.ACTIVE
        membership.save(update_fields=["status"])
    return membership
