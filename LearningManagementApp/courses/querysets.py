"""Custom querysets encapsulating visibility and role-based filtering for courses and memberships."""

from django.db.models import QuerySet, Q
from typing import Self

from LearningManagementApp.core.choices import MemberRole, EnrollmentStatus


class CourseQuerySet(QuerySet):
    """QuerySet with helpers for course visibility and ownership."""

    def public_published(self) -> Self:
        """Courses that are both public and published."""
        return self.filter(is_public=True, is_published=True)

    def for_instructor(self, user) -> Self:
        """Courses taught by the given user (owner or instructor membership)."""
        return self.filter(
            Q(instructor=user) |
            Q(memberships__user=user, memberships__role=MemberRole.INSTRUCTOR)
        ).distinct()

    def where_enrolled(self, user) -> Self:
        """Courses where the user is an active student."""
        return self.filter(
            memberships__user=user,
            memberships__role=MemberRole.STUDENT,
            memberships__status=EnrollmentStatus.ACTIVE,
        ).distinct()

    def visible_to(self, user) -> Self:
        """Courses visible to user:
        - Anonymous: public & published
        - Admin: everything
        - Authenticated: union of (public & published) OR instructed OR active member
        """
        if not user or not user.is_authenticated:
            return self.public_published()
        if user.is_admin:
            return self.all()
        return self.filter(
            Q(is_public=True, is_published=True) |
            Q(instructor=user) |
            Q(memberships__user=user, memberships__status=EnrollmentStatus.ACTIVE)
        ).distinct()


class MembershipQuerySet(QuerySet):
    """QuerySet helpers for course memberships."""

    def active(self) -> Self:
        return self.filter(status=EnrollmentStatus.ACTIVE)

    def students(self) -> Self:
        return self.filter(role=MemberRole.STUDENT)

    def staff(self) -> Self:
        """Instructors and teaching assistants."""
        return self.filter(role__in=[MemberRole.INSTRUCTOR, MemberRole.TEACHING_ASSISTANT])
