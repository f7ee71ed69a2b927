"""Custom DRF permission classes for role, course and ownership based access control."""

from typing import Any

from django.shortcuts import get_object_or_404
from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from LearningManagementApp.core.access import (
    course_from, is_admin, is_course_staff, is_member,
)
from LearningManagementApp.core.choices import UserRole
from LearningManagementApp.courses.models import Course


class HasRole(BasePermission):
    """Global role gate; administrators always pass.

    Usage: ``HasRole(UserRole.INSTRUCTOR)`` in ``get_permissions``.
    """
    roles: tuple[str, ...] = ()

    def __init__(self, *roles: str) -> None:
        self.roles = roles or self.roles
        self.message = f"Access denied. Required role: {' or '.join(r.lower() for r in self.roles)}"

    def has_permission(self, request: Request, view: Any) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return is_admin(user) or user.role in self.roles


class IsAdminRole(HasRole):
    """Administrators only."""
    roles = (UserRole.ADMIN,)


class CoursePermission(BasePermission):
    """Base class resolving the course of nested routes (``course_pk``)."""

    def _course_from_view(self, view: Any) -> Course | None:
        course = getattr(view, "_resolved_course", None)
        if course:
            return course
        course_pk = getattr(view, "kwargs", {}).get("course_pk")
        if course_pk is None:
            return None
        course = get_object_or_404(Course, pk=course_pk)
        view._resolved_course = course
        return course


class IsCourseMember(CoursePermission):
    """Members (any role) of the course in the URL; administrators pass."""
    message = "You are not a member of this course."

    def has_permission(self, request: Request, view: Any) -> bool:
        course = self._course_from_view(view)
        return course is None or is_admin(request.user) or is_member(request.user, course)

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        course = course_from(obj)
        return is_admin(request.user) or is_member(request.user, course)


class IsSubmissionParticipant(BasePermission):
    """The submitting student or staff of the submission's course."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        if getattr(obj, "student_id", None) == request.user.id:
            return True
        return is_admin(request.user) or is_course_staff(request.user, course_from(obj))


class IsAttemptParticipant(BasePermission):
    """The student who owns a quiz attempt or staff of the quiz's course."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        if obj.user_id == request.user.id:
            return True
        return is_admin(request.user) or is_course_staff(request.user, course_from(obj))
