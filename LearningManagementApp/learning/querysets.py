"""QuerySet helpers for assignments, submissions and gradebook rows."""

from typing import Self

from django.db.models import QuerySet, Q

from LearningManagementApp.core.choices import EnrollmentStatus, MemberRole, SubmissionState


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment listings."""

    def upcoming(self, now) -> Self:
        """Assignments whose due date has not passed, soonest first."""
        return self.filter(due_date__gte=now).order_by("due_date")

    def for_student(self, user) -> Self:
        """Assignments of courses where the user is an active student."""
        return self.filter(
            course__memberships__user=user,
            course__memberships__role=MemberRole.STUDENT,
            course__memberships__status=EnrollmentStatus.ACTIVE,
        ).distinct()


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering submissions by role and grading state."""

    def for_course(self, course) -> Self:
        return self.filter(assignment__course=course)

    def for_staff(self, user) -> Self:
        """Submissions in courses where user is an instructor or teaching assistant."""
        return self.filter(
            Q(assignment__course__instructor=user) |
            Q(assignment__course__memberships__user=user,
              assignment__course__memberships__role__in=[MemberRole.INSTRUCTOR, MemberRole.TEACHING_ASSISTANT])
        ).distinct()

    def for_student(self, user) -> Self:
        """Submissions belonging to the student."""
        return self.filter(student=user)

    def graded(self) -> Self:
        return self.filter(status=SubmissionState.GRADED)

    def pending(self) -> Self:
        return self.exclude(status=SubmissionState.GRADED)

    def search(self, term: str) -> Self:
        """Match student name or email."""
        return self.filter(
            Q(student__first_name__icontains=term) |
            Q(student__last_name__icontains=term) |
            Q(student__email__icontains=term)
        )
