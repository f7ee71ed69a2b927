"""Domain service functions for quiz authoring: quizzes, questions and answer options.

Question payloads (for both the nested quiz form and the question endpoints)::

    {"id": 3,                     # optional, updates an existing question
     "question_text": "...",
     "question_type": "MULTIPLE_CHOICE",
     "points": 2,
     "correct_answer": "true",    # TRUE_FALSE / SHORT_ANSWER
     "options": [{"id": 7, "option_text": "...", "is_correct": true, "explanation": ""}]}
"""

import logging
from collections.abc import Iterable
from typing import Any

from django.db import transaction
from django.db.models import F, Max, QuerySet
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.core import access
from LearningManagementApp.core.choices import PermissionType, QuestionType
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.domain.services import acl_service, content_service, gradebook_service
from LearningManagementApp.quizzes.grading import parse_boolean
from LearningManagementApp.quizzes.models import Quiz, QuizQuestion, QuizQuestionOption

logger = logging.getLogger(__name__)

CHOICE_TYPES = (QuestionType.MULTIPLE_CHOICE, QuestionType.MULTIPLE_ANSWER)


def _ensure_instructor(user: User, course: Course) -> None:
    if not access.can_manage_course(user, course):
        raise PermissionDenied("Instructor role required")

def _ensure_quiz_manager(user: User, quiz: Quiz) -> None:
    """Instructor of the course holding MANAGE on the quiz."""
    _ensure_instructor(user, quiz.course)
    acl_service.require_permission(user, quiz, PermissionType.MANAGE)


def validate_question_payload(data: dict[str, Any]) -> None:
    """Type-specific rules for a question payload; raises ValidationError."""
    question_type = data.get("question_type")
    options = data.get("options") or []
    correct = [option for option in options if option.get("is_correct")]
    if question_type == QuestionType.MULTIPLE_CHOICE:
        if len(options) < 2:
            raise ValidationError({"options": ["Multiple choice questions must have at least 2 options."]})
        if len(correct) != 1:
            raise ValidationError({"options": ["Multiple choice questions must have exactly one correct option."]})
    elif question_type == QuestionType.MULTIPLE_ANSWER:
        if len(options) < 2:
            raise ValidationError({"options": ["Multiple answer questions must have at least 2 options."]})
        if not correct:
            raise ValidationError({"options": ["Multiple answer questions need at least one correct option."]})
    elif question_type == QuestionType.TRUE_FALSE:
        if parse_boolean(data.get("correct_answer")) is None:
            raise ValidationError({"correct_answer": ["True/False questions need a correct answer of true or false."]})


def _validate_window(open_date, close_date) -> None:
    if open_date and close_date and close_date <= open_date:
        raise ValidationError({"close_date": ["The close date must be after the open date."]})

def _check_links(course: Course, data: dict[str, Any]) -> None:
    if "module" in data:
        content_service.check_module(course, data["module"])
    if "category" in data:
        gradebook_service.check_category(course, data["category"])


def _sync_options(question: QuizQuestion, options_data: list[dict[str, Any]]) -> None:
    if question.question_type == QuestionType.TRUE_FALSE:
        answer = parse_boolean(question.correct_answer)
        question.options.all().delete()
        QuizQuestionOption.objects.bulk_create([
            QuizQuestionOption(question=question, option_text="True", is_correct=answer is True, order=0),
            QuizQuestionOption(question=question, option_text="False", is_correct=answer is False, order=1),
        ])
        return
    if question.question_type not in CHOICE_TYPES:
        question.options.all().delete()
        return
    existing = {option.pk: option for option in question.options.all()}
    kept = []
    for index, data in enumerate(options_data):
        option = existing.get(data.get("id")) or QuizQuestionOption(question=question)
        option.option_text = data["option_text"]
        option.is_correct = bool(data.get("is_correct"))
        option.explanation = data.get("explanation", "")
        option.order = index
        option.save()
        kept.append(option.pk)
    question.options.exclude(pk__in=kept).delete()


def _save_question(quiz: Quiz, data: dict[str, Any], question: QuizQuestion | None, order: int) -> QuizQuestion:
    validate_question_payload(data)
    question = question or QuizQuestion(quiz=quiz)
    question.question_text = data["question_text"]
    question.question_type = data["question_type"]
    question.points = data.get("points", question.points)
    question.correct_answer = data.get("correct_answer") or ""
    question.order = order
    question.save()
    _sync_options(question, data.get("options") or [])
    return question


def sync_questions(quiz: Quiz, questions_data: list[dict[str, Any]]) -> None:
    """Make the quiz's questions match the payload list (order = list position)."""
    existing = {question.pk: question for question in quiz.questions.all()}
    kept = []
    for index, data in enumerate(questions_data):
        question_id = data.get("id")
        if question_id is not None and question_id not in existing:
            raise ValidationError({"questions": [f"Question {question_id} does not belong to this quiz."]})
        question = _save_question(quiz, data, existing.get(question_id), index)
        kept.append(question.pk)
    quiz.questions.exclude(pk__in=kept).delete()


# ---------- Quizzes ----------
@transaction.atomic
def create_quiz(
    teacher: User,
    course: Course,
    data: dict[str, Any],
    questions: list[dict[str, Any]] | None = None,
    is_published: bool = True,
) -> Quiz:
    """Create a quiz with its questions; students see it once published."""
    _ensure_instructor(teacher, course)
    _validate_window(data.get("open_date"), data.get("close_date"))
    _check_links(course, data)
    quiz = Quiz.objects.create(course=course, created_by=teacher, **data)
    if questions:
        sync_questions(quiz, questions)
    acl_service.setup_default_permissions(quiz, publish=is_published)
    logger.info("Quiz %s created in course %s with %d questions", quiz.pk, course.pk, len(questions or []))
    return quiz

@transaction.atomic
def update_quiz(
    teacher: User,
    quiz: Quiz,
    data: dict[str, Any],
    questions: list[dict[str, Any]] | None = None,
    is_published: bool | None = None,
) -> Quiz:
    _ensure_quiz_manager(teacher, quiz)
    _validate_window(data.get("open_date", quiz.open_date), data.get("close_date", quiz.close_date))
    _check_links(quiz.course, data)
    for field, value in data.items():
        setattr(quiz, field, value)
    quiz.save()
    if "category" in data:
        quiz.grades.update(category=quiz.category)
    if questions is not None:
        sync_questions(quiz, questions)
    if is_published is not None:
        set_published(teacher, quiz, is_published)
    return quiz

@transaction.atomic
def delete_quiz(teacher: User, quiz: Quiz) -> None:
    _ensure_quiz_manager(teacher, quiz)
    logger.info("Quiz %s deleted by %s", quiz.pk, teacher.pk)
    quiz.delete()

@transaction.atomic
def set_published(teacher: User, quiz: Quiz, published: bool) -> Quiz:
    _ensure_quiz_manager(teacher, quiz)
    if published:
        acl_service.make_public(quiz)
    else:
        acl_service.make_private(quiz)
    return quiz

def quizzes_for(user: User, course: Course) -> QuerySet[Quiz]:
    """Staff see every quiz of the course; students the ones published to them."""
    qs = course.quizzes.order_by("close_date", "id")
    if access.is_admin(user) or access.is_course_staff(user, course):
        return qs
    return acl_service.accessible_queryset(qs, user, PermissionType.VIEW)


# ---------- Questions ----------
@transaction.atomic
def add_question(teacher: User, quiz: Quiz, data: dict[str, Any]) -> QuizQuestion:
    _ensure_instructor(teacher, quiz.course)
    top = quiz.questions.aggregate(top=Max("order"))["top"]
    return _save_question(quiz, data, None, 0 if top is None else top + 1)

@transaction.atomic
def update_question(teacher: User, question: QuizQuestion, data: dict[str, Any]) -> QuizQuestion:
    _ensure_instructor(teacher, question.quiz.course)
    merged = {
        "question_text": question.question_text,
        "question_type": question.question_type,
        "points": question.points,
        "correct_answer": question.correct_answer,
        "options": [
            {"id": o.pk, "option_text": o.option_text, "is_correct": o.is_correct, "explanation": o.explanation}
            for o in question.options.all()
        ],
    }
    merged.update(data)
    return _save_question(question.quiz, merged, question, question.order)

@transaction.atomic
def delete_question(teacher: User, question: QuizQuestion) -> None:
    """Delete a question and close the gap in the ordering."""
    _ensure_instructor(teacher, question.quiz.course)
    quiz, order = question.quiz, question.order
    question.delete()
    quiz.questions.filter(order__gt=order).update(order=F("order") - 1)

@transaction.atomic
def reorder_questions(teacher: User, quiz: Quiz, question_ids: Iterable[int]) -> None:
    _ensure_instructor(teacher, quiz.course)
    question_ids = list(question_ids)
    questions = {q.pk: q for q in quiz.questions.filter(pk__in=question_ids)}
    if len(questions) != len(set(question_ids)):
        raise ValidationError({"question_ids": ["Invalid question IDs provided."]})
    for index, question_id in enumerate(question_ids):
        QuizQuestion.objects.filter(pk=question_id).update(order=index)
