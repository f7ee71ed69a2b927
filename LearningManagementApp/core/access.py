"""Role & object access helpers."""

from typing import Any
from LearningManagementApp.courses.models import Course, CourseMembership
from LearningManagementApp.content.models import ModuleResource
from LearningManagementApp.learning.models import Submission, SubmissionAttachment, Grade
from LearningManagementApp.quizzes.models import QuizQuestion, QuizQuestionOption, QuizAttempt
from LearningManagementApp.communication.models import DiscussionReply
from LearningManagementApp.core.choices import MemberRole, EnrollmentStatus


def course_from(obj: Any) -> Course | None:
    if obj is None:
        return None
    if isinstance(obj, Course):
        return obj
    if isinstance(obj, ModuleResource):
        return obj.module.course
    if isinstance(obj, Submission):
        return obj.assignment.course
    if isinstance(obj, SubmissionAttachment):
        return obj.submission.assignment.course
    if isinstance(obj, (QuizQuestion, QuizAttempt)):
        return obj.quiz.course
    if isinstance(obj, QuizQuestionOption):
        return obj.question.quiz.course
    if isinstance(obj, DiscussionReply):
        return obj.discussion.course
    return getattr(obj, "course", None)


def is_admin(user) -> bool:
    return bool(user and user.is_authenticated and user.is_admin)


def is_owner(user, course: Course | None) -> bool:
    return bool(user and course and course.instructor_id == user.id)


def _has_role(user, course: Course | None, *roles: str) -> bool:
    if not (user and user.is_authenticated and course):
        return False
    return CourseMembership.objects.filter(
        course=course, user=user, role__in=roles, status=EnrollmentStatus.ACTIVE
    ).exists()


def is_instructor(user, course: Course | None) -> bool:
    """Course owner or a member enrolled with the INSTRUCTOR role."""
    return is_owner(user, course) or _has_role(user, course, MemberRole.INSTRUCTOR)


def is_teaching_assistant(user, course: Course | None) -> bool:
    return _has_role(user, course, MemberRole.TEACHING_ASSISTANT)


def is_course_staff(user, course: Course | None) -> bool:
    """Instructors and teaching assistants of the course."""
    return is_owner(user, course) or _has_role(
        user, course, MemberRole.INSTRUCTOR, MemberRole.TEACHING_ASSISTANT
    )


def is_student(user, course: Course | None) -> bool:
    """Active student enrollment."""
    return _has_role(user, course, MemberRole.STUDENT)


def is_member(user, course: Course | None) -> bool:
    return is_owner(user, course) or _has_role(user, course, *MemberRole.values)


def can_manage_course(user, course: Course | None) -> bool:
    return is_admin(user) or is_instructor(user, course)


def can_view_course(user, course: Course | None) -> bool:
    if course is None:
        return False
    if course.is_public and course.is_published:
        return True
    return is_admin(user) or is_member(user, course)


def can_edit_reply(user, reply: DiscussionReply) -> bool:
    """Authors edit their own live replies while the thread is open."""
    return bool(
        user and user.is_authenticated
        and reply.author_id == user.id
        and not reply.is_deleted
        and not reply.discussion.is_locked
    )


def can_delete_reply(user, reply: DiscussionReply) -> bool:
    if not (user and user.is_authenticated) or reply.is_deleted:
        return False
    return reply.author_id == user.id or is_admin(user) or is_course_staff(user, reply.discussion.course)
