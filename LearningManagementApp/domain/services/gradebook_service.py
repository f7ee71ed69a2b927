"""Gradebook: one Grade row per student and graded item, plus weighted category totals."""

import logging
from decimal import Decimal
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Max
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.core import access
from LearningManagementApp.core.choices import MemberRole, EnrollmentStatus
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.learning.models import Grade, GradeCategory

logger = logging.getLogger(__name__)

LETTER_THRESHOLDS = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def letter_grade(points_earned: Decimal, points_possible: Decimal) -> str:
    if not points_possible:
        return ""
    percentage = float(points_earned) / float(points_possible) * 100
    for threshold, letter in LETTER_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return "F"


def check_category(course: Course, category: GradeCategory | None) -> None:
    if category is not None and category.course_id != course.pk:
        raise ValidationError({"category": ["The selected category does not belong to this course."]})


def record_assignment_grade(submission, grader: User) -> Grade:
    assignment = submission.assignment
    grade, _ = Grade.objects.update_or_create(
        student=submission.student,
        assignment=assignment,
        defaults={
            "course": assignment.course,
            "category": assignment.category,
            "points_earned": submission.grade,
            "points_possible": assignment.points,
            "letter_grade": letter_grade(submission.grade, assignment.points),
            "comments": submission.feedback,
            "graded_by": grader,
        },
    )
    return grade


def clear_assignment_grade(student: User, assignment) -> None:
    Grade.objects.filter(student=student, assignment=assignment).delete()


def record_quiz_grade(attempt, grader=None) -> Grade | None:
    """Keep the student's best graded attempt in the gradebook."""
    quiz = attempt.quiz
    best = quiz.attempts.filter(user=attempt.user, is_graded=True).aggregate(best=Max("score"))["best"]
    if best is None:
        return None
    total = quiz.total_points
    grade, _ = Grade.objects.update_or_create(
        student=attempt.user,
        quiz=quiz,
        defaults={
            "course": quiz.course,
            "category": quiz.category,
            "points_earned": best,
            "points_possible": total,
            "letter_grade": letter_grade(best, total),
            "graded_by": grader,
        },
    )
    logger.info("Gradebook quiz %s for user %s = %s/%s", quiz.pk, attempt.user_id, best, total)
    return grade


def _summarise(grades: list[Grade], categories: list[GradeCategory]) -> dict[str, Any]:
    earned = sum((g.points_earned for g in grades), Decimal("0"))
    possible = sum((g.points_possible for g in grades), Decimal("0"))
    weighted_total = Decimal("0")
    weight_used = Decimal("0")
    for category in categories:
        rows = [g for g in grades if g.category_id == category.pk]
        cat_possible = sum((g.points_possible for g in rows), Decimal("0"))
        if not cat_possible:
            continue
        cat_earned = sum((g.points_earned for g in rows), Decimal("0"))
        weighted_total += cat_earned / cat_possible * category.weight
        weight_used += category.weight
    percentage = round(float(earned) / float(possible) * 100, 2) if possible else None
    weighted = round(float(weighted_total / weight_used * 100), 2) if weight_used else None
    return {
        "points_earned": earned,
        "points_possible": possible,
        "percentage": percentage,
        "weighted_percentage": weighted,
        "letter_grade": letter_grade(earned, possible),
    }


def course_gradebook(user: User, course: Course) -> list[dict[str, Any]]:
    """Staff get a row per enrolled student; students only their own row."""
    if access.is_admin(user) or access.is_course_staff(user, course):
        students = get_user_model().objects.filter(
            course_memberships__course=course,
            course_memberships__role=MemberRole.STUDENT,
            course_memberships__status=EnrollmentStatus.ACTIVE,
        ).order_by("last_name", "first_name", "id")
    elif access.is_student(user, course):
        students = [user]
    else:
        raise PermissionDenied("You are not a member of this course.")
    students = list(students)
    categories = list(course.grade_categories.all())
    grades = list(
        Grade.objects.filter(course=course, student__in=students)
        .select_related("assignment", "quiz", "category")
        .order_by("created_at", "id")
    )
    rows = []
    for student in students:
        own = [g for g in grades if g.student_id == student.pk]
        rows.append({"student": student, "grades": own, "summary": _summarise(own, categories)})
    return rows


@transaction.atomic
def save_category(actor: User, course: Course, data: dict[str, Any], category: GradeCategory | None = None) -> GradeCategory:
    if not access.can_manage_course(actor, course):
        raise PermissionDenied("Instructor role required")
    if category is None:
        return GradeCategory.objects.create(course=course, **data)
    for field, value in data.items():
        setattr(category, field, value)
    category.save()
    return category


@transaction.atomic
def delete_category(actor: User, category: GradeCategory) -> None:
    if not access.can_manage_course(actor, category.course):
        raise PermissionDenied("Instructor role required")
    category.delete()
