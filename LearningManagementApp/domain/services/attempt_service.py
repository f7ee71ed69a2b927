"""Domain service functions for the quiz attempt lifecycle.

State transitions for attempts:
    IN_PROGRESS -> COMPLETED            (submitted, every question auto-graded)
    IN_PROGRESS -> SUBMITTED -> COMPLETED  (submitted, then manually graded)
An attempt whose time limit ran out is submitted automatically with the answers
saved before the deadline, the next time anyone touches it (start, save, submit)
or when ``autosubmit_expired`` runs.
"""

import logging
import random
from decimal import Decimal
from typing import Any

from django.db import transaction
from django.db.models import Max, QuerySet
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.core import access
from LearningManagementApp.core.choices import AttemptStatus
from LearningManagementApp.core.exceptions import UnprocessableEntity
from LearningManagementApp.courses.models import User
from LearningManagementApp.domain.services import gradebook_service
from LearningManagementApp.quizzes import grading
from LearningManagementApp.quizzes.models import Quiz, QuizAttempt, QuizQuestion

logger = logging.getLogger(__name__)

AUTO_GRADED_MESSAGE = "Your quiz has been graded automatically."
MANUAL_GRADING_MESSAGE = "Your quiz has been submitted. Some questions require manual grading."
TIME_EXPIRED_MESSAGE = "Time limit expired. Your attempt has been submitted automatically."
ALREADY_SUBMITTED_MESSAGE = "This quiz attempt has already been submitted."
FINISHED_STATUSES = (AttemptStatus.SUBMITTED, AttemptStatus.COMPLETED)


def _questions(quiz: Quiz) -> list[QuizQuestion]:
    return list(quiz.questions.prefetch_related("options"))

def _ensure_owner(student: User, attempt: QuizAttempt) -> None:
    if attempt.user_id != student.pk:
        raise PermissionDenied("This attempt does not belong to you.")

def _ensure_grader(user: User, quiz: Quiz) -> None:
    if not (access.is_admin(user) or access.is_course_staff(user, quiz.course)):
        raise PermissionDenied("Instructor or teaching assistant role required")

def _locked(attempt: QuizAttempt) -> QuizAttempt:
    return QuizAttempt.objects.select_for_update().select_related("quiz").get(pk=attempt.pk)


def ordered_questions(attempt: QuizAttempt) -> list[QuizQuestion]:
    """Questions in the order served to this attempt; questions added later go last."""
    questions = _questions(attempt.quiz)
    position = {question_id: index for index, question_id in enumerate(attempt.question_order)}
    return sorted(questions, key=lambda q: (position.get(q.pk, len(position)), q.order, q.pk))

def ordered_options(attempt: QuizAttempt, question: QuizQuestion) -> list:
    """Options of a question, shuffled stably per attempt when the quiz asks for it."""
    options = list(question.options.all())
    if attempt.quiz.shuffle_answers:
        random.Random(f"{attempt.pk}:{question.pk}").shuffle(options)
    return options

def can_reveal_answers(user: User, attempt: QuizAttempt) -> bool:
    """Staff always; the student once the attempt is finished and the quiz shows results."""
    if access.is_admin(user) or access.is_course_staff(user, attempt.quiz.course):
        return True
    return attempt.is_completed and attempt.quiz.show_results


def validated_answers(quiz: Quiz, answers: Any) -> dict[str, Any]:
    """Answers must be an object keyed by question ids of this quiz."""
    if not isinstance(answers, dict):
        raise ValidationError({"answers": ["Answers must be an object keyed by question ID."]})
    answers = grading.normalise_answers(answers)
    valid_ids = {str(pk) for pk in quiz.questions.values_list("pk", flat=True)}
    for key in answers:
        if key not in valid_ids:
            raise ValidationError({f"answers.{key}": ["Invalid question ID."]})
    return answers


def _finalise(attempt: QuizAttempt, answers: dict[str, Any], now) -> QuizAttempt:
    """Score and close an in-progress attempt."""
    questions = _questions(attempt.quiz)
    elapsed = attempt.elapsed_minutes(now)
    if attempt.quiz.time_limit:
        elapsed = min(elapsed, attempt.quiz.time_limit)
    attempt.answers = answers
    attempt.time_taken = elapsed
    attempt.score = grading.grade_answers(questions, answers)
    attempt.is_graded = grading.all_objective(questions)
    attempt.status = AttemptStatus.COMPLETED if attempt.is_graded else AttemptStatus.SUBMITTED
    attempt.end_time = now
    attempt.save()
    if attempt.is_graded:
        gradebook_service.record_quiz_grade(attempt)
    return attempt


@transaction.atomic
def _submit_if_expired(student: User, quiz: Quiz) -> None:
    existing = quiz.attempts.filter(user=student, status=AttemptStatus.IN_PROGRESS).first()
    if existing is None:
        return
    existing = _locked(existing)
    now = timezone.now()
    if existing.status == AttemptStatus.IN_PROGRESS and existing.has_time_expired(now):
        _finalise(existing, existing.answers, now)
        logger.info("Attempt %s auto-submitted on restart (time expired)", existing.pk)


def start_attempt(student: User, quiz: Quiz) -> tuple[QuizAttempt, bool]:
    """Start (or resume) an attempt.

    An expired in-progress attempt is submitted and committed first, so it stays
    submitted even when the new attempt is refused.

    Returns:
        (attempt, created). ``created`` is False when an in-progress attempt is resumed.

    Raises:
        PermissionDenied: caller is not an active student of the course.
        UnprocessableEntity: quiz unpublished, not open yet, closed, or attempts exhausted.
    """
    if not access.is_student(student, quiz.course):
        raise PermissionDenied("You are not enrolled in this course.")
    _submit_if_expired(student, quiz)
    return _open_attempt(student, quiz)


@transaction.atomic
def _open_attempt(student: User, quiz: Quiz) -> tuple[QuizAttempt, bool]:
    quiz = Quiz.objects.select_for_update().select_related("course").get(pk=quiz.pk)
    if not quiz.is_published:
        raise UnprocessableEntity("This quiz is not yet available.")
    now = timezone.now()
    if quiz.open_date and quiz.open_date > now:
        raise UnprocessableEntity("This quiz is not yet open.")
    if quiz.close_date and quiz.close_date < now:
        raise UnprocessableEntity("This quiz has closed.")

    existing = quiz.attempts.filter(user=student, status=AttemptStatus.IN_PROGRESS).first()
    if existing is not None and not existing.has_time_expired(now):
        return existing, False
    if existing is not None:
        _finalise(existing, existing.answers, now)
        logger.info("Attempt %s auto-submitted on restart (time expired)", existing.pk)

    finished = quiz.attempts.filter(user=student, status__in=FINISHED_STATUSES).count()
    if quiz.attempts_allowed is not None and finished >= quiz.attempts_allowed:
        raise UnprocessableEntity(
            f"You have reached the maximum number of attempts ({quiz.attempts_allowed})."
        )

    last_number = quiz.attempts.filter(user=student).aggregate(top=Max("attempt_number"))["top"] or 0
    question_ids = list(quiz.questions.values_list("pk", flat=True))
    if quiz.shuffle_questions:
        random.shuffle(question_ids)
    attempt = QuizAttempt.objects.create(
        quiz=quiz,
        user=student,
        attempt_number=last_number + 1,
        status=AttemptStatus.IN_PROGRESS,
        start_time=now,
        answers={},
        question_order=question_ids,
    )
    logger.info("Attempt %s (#%d) started on quiz %s by user %s", attempt.pk, attempt.attempt_number, quiz.pk, student.pk)
    return attempt, True


@transaction.atomic
def save_answers(student: User, attempt: QuizAttempt, answers: Any) -> tuple[QuizAttempt, bool]:
    """Replace the saved answers of an in-progress attempt.

    Returns:
        (attempt, auto_submitted). When the time limit already ran out the attempt is
        submitted with its previously saved answers and the new ones are discarded.
    """
    _ensure_owner(student, attempt)
    attempt = _locked(attempt)
    now = timezone.now()
    if attempt.has_time_expired(now):
        _finalise(attempt, attempt.answers, now)
        logger.info("Attempt %s auto-submitted while saving (time expired)", attempt.pk)
        return attempt, True
    if not attempt.is_in_progress:
        raise UnprocessableEntity(ALREADY_SUBMITTED_MESSAGE)
    attempt.answers = validated_answers(attempt.quiz, answers)
    attempt.save(update_fields=["answers", "updated_at"])
    return attempt, False


@transaction.atomic
def submit_attempt(student: User, attempt: QuizAttempt, answers: Any = None) -> QuizAttempt:
    """Submit an attempt; answers sent after the time limit are ignored."""
    _ensure_owner(student, attempt)
    attempt = _locked(attempt)
    if not attempt.is_in_progress:
        raise UnprocessableEntity(ALREADY_SUBMITTED_MESSAGE)
    now = timezone.now()
    if attempt.has_time_expired(now) or answers is None:
        final_answers = attempt.answers
    else:
        final_answers = validated_answers(attempt.quiz, answers)
    _finalise(attempt, final_answers, now)
    logger.info("Attempt %s submitted: score=%s graded=%s", attempt.pk, attempt.score, attempt.is_graded)
    return attempt


def feedback(attempt: QuizAttempt) -> dict[str, Any]:
    """Summary returned to the student right after submission."""
    return {
        "score": attempt.score,
        "percentage": attempt.percentage_score,
        "total_points": attempt.quiz.total_points,
        "is_graded": attempt.is_graded,
        "message": AUTO_GRADED_MESSAGE if attempt.is_graded else MANUAL_GRADING_MESSAGE,
    }


@transaction.atomic
def grade_attempt(grader: User, attempt: QuizAttempt, scores: dict[Any, Any], comment: str = "") -> QuizAttempt:
    """Score free-text questions by hand and recompute the attempt total.

    The attempt becomes COMPLETED once every answered free-text question has a score.
    """
    _ensure_grader(grader, attempt.quiz)
    attempt = _locked(attempt)
    if attempt.is_in_progress:
        raise UnprocessableEntity("This attempt has not been submitted yet.")
    questions = {str(q.pk): q for q in _questions(attempt.quiz)}
    manual = dict(attempt.manual_scores)
    for key, value in grading.normalise_answers(scores).items():
        question = questions.get(key)
        if question is None:
            raise ValidationError({f"scores.{key}": ["Invalid question ID."]})
        if question.is_objective:
            raise ValidationError({f"scores.{key}": ["Objective questions are graded automatically."]})
        points = Decimal(str(value))
        if points < 0 or points > question.points:
            raise ValidationError({f"scores.{key}": [f"Score must be between 0 and {question.points}."]})
        manual[key] = str(points)

    manual = {key: value for key, value in manual.items() if key in questions}
    auto = grading.grade_answers(questions.values(), attempt.answers)
    manual_total = sum((Decimal(value) for value in manual.values()), Decimal("0"))
    pending = [
        q for key, q in questions.items()
        if not q.is_objective and grading.is_answered(attempt.answers.get(key)) and key not in manual
    ]
    attempt.manual_scores = manual
    attempt.score = (auto + manual_total).quantize(grading.TWO_PLACES)
    attempt.is_graded = not pending
    attempt.status = AttemptStatus.COMPLETED if attempt.is_graded else AttemptStatus.SUBMITTED
    attempt.graded_by = grader
    if comment:
        attempt.feedback = comment
    attempt.save()
    if attempt.is_graded:
        gradebook_service.record_quiz_grade(attempt, grader)
    logger.info("Attempt %s graded by %s: score=%s complete=%s", attempt.pk, grader.pk, attempt.score, attempt.is_graded)
    return attempt


def attempts_for(user: User, quiz: Quiz) -> QuerySet[QuizAttempt]:
    """Course staff see every attempt; students their own, newest first."""
    qs = quiz.attempts.select_related("user", "quiz")
    if access.is_admin(user) or access.is_course_staff(user, quiz.course):
        return qs
    if not access.is_student(user, quiz.course):
        raise PermissionDenied("You are not enrolled in this course.")
    return qs.filter(user=user)


def autosubmit_expired(now=None) -> int:
    """Submit every in-progress attempt whose time limit has run out."""
    now = now or timezone.now()
    submitted = 0
    candidates = QuizAttempt.objects.filter(
        status=AttemptStatus.IN_PROGRESS, quiz__time_limit__isnull=False
    ).select_related("quiz")
    for attempt in candidates:
        if not attempt.has_time_expired(now):
            continue
        with transaction.atomic():
            locked = _locked(attempt)
            if locked.has_time_expired(now):
                _finalise(locked, locked.answers, now)
                submitted += 1
    return submitted
