"""Quiz domain models: Quiz, QuizQuestion, QuizQuestionOption, QuizAttempt."""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from simple_history.models import HistoricalRecords

from LearningManagementApp.acl.mixins import AclProtectedModel
from LearningManagementApp.core.choices import (
    AttemptStatus, QuestionType, OBJECTIVE_QUESTION_TYPES, GranteeType, PermissionType, UserRole,
)
from LearningManagementApp.courses.models import Course
from LearningManagementApp.content.models import CourseModule

User = settings.AUTH_USER_MODEL


class Quiz(AclProtectedModel):
    """A timed, optionally shuffled set of questions a student may attempt a limited number of times.

    Fields:
        open_date / close_date: Window in which attempts may start (both optional).
        time_limit: Minutes per attempt; null means untimed.
        attempts_allowed: Finished attempts permitted; null means unlimited.
        shuffle_questions / shuffle_answers: Randomise order per attempt.
        show_results: Reveal correct answers once an attempt is completed.
        category: Gradebook category the quiz grade counts toward.
    """
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="quizzes")
    module = models.ForeignKey(CourseModule, on_delete=models.SET_NULL, null=True, blank=True, related_name="quizzes")
    category = models.ForeignKey(
        "learning.GradeCategory", on_delete=models.SET_NULL, null=True, blank=True, related_name="quizzes"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    open_date = models.DateTimeField(null=True, blank=True)
    close_date = models.DateTimeField(null=True, blank=True)
    time_limit = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    attempts_allowed = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    shuffle_questions = models.BooleanField(default=False)
    shuffle_answers = models.BooleanField(default=False)
    show_results = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_quizzes")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        verbose_name_plural = "quizzes"

    def __str__(self) -> str:
        return self.title

    @property
    def total_points(self) -> Decimal:
        return self.questions.aggregate(total=Sum("points"))["total"] or Decimal("0")

    @property
    def is_published(self) -> bool:
        """Students can see the quiz once their role holds a VIEW entry."""
        return self.acl_entries.filter(
            grantee_type=GranteeType.ROLE,
            grantee_role=UserRole.STUDENT,
            permission_type=PermissionType.VIEW,
        ).exists()


class QuizQuestion(models.Model):
    """A question inside a quiz; objective types are auto-graded."""
    quiz = models.ForeignKey(Quiz, on_delete=models.CASCADE, related_name="questions")
    question_text = models.TextField()
    question_type = models.CharField(max_length=20, choices=QuestionType.choices)
    points = models.DecimalField(
        max_digits=6, decimal_places=2, default=Decimal("1"), validators=[MinValueValidator(Decimal("0"))]
    )
    order = models.PositiveIntegerField(default=0)
    correct_answer = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order", "id"]

    @property
    def is_objective(self) -> bool:
        return self.question_type in OBJECTIVE_QUESTION_TYPES


class QuizQuestionOption(models.Model):
    question = models.ForeignKey(QuizQuestion, on_delete=models.CASCADE, related_name="options")
    option_text = models.CharField(max_length=1000)
    is_correct = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    explanation = models.TextField(blank=True)

    class Meta:
        ordering = ["order", "id"]


class QuizAttempt(models.Model):
    """One student run through a quiz.

    Fields:
        answers: question id (as string) -> answer (option id, bool text, id list or free text).
        question_order: question ids in the order served for this attempt.
        manual_scores: question id (as string) -> points awarded by a grader.
        time_taken: Whole minutes between start and submission.
    Constraints:
        uq_quiz_attempt_number: attempt numbers are unique per student and quiz.
    """
    quiz = models.ForeignKey(Quiz, on_delete=models.CASCADE, related_name="attempts")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="quiz_attempts")
    attempt_number = models.PositiveIntegerField()
    status = models.CharField(max_length=16, choices=AttemptStatus.choices, default=AttemptStatus.IN_PROGRESS)
    start_time = models.DateTimeField(default=timezone.now)
    end_time = models.DateTimeField(null=True, blank=True)
    time_taken = models.PositiveIntegerField(null=True, blank=True)
    answers = models.JSONField(default=dict, blank=True)
    question_order = models.JSONField(default=list, blank=True)
    manual_scores = models.JSONField(default=dict, blank=True)
    score = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    is_graded = models.BooleanField(default=False)
    feedback = models.TextField(blank=True)
    graded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="graded_attempts")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["quiz", "user", "attempt_number"], name="uq_quiz_attempt_number"),
        ]

    def __str__(self) -> str:
        return f"Attempt #{self.attempt_number} of {self.quiz_id} by {self.user_id} ({self.status})"

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.status in (AttemptStatus.SUBMITTED, AttemptStatus.COMPLETED)

    def elapsed_minutes(self, now=None) -> int:
        """Whole minutes since start while in progress, otherwise the recorded time taken."""
        if not self.is_in_progress:
            return self.time_taken or 0
        now = now or timezone.now()
        return max(0, int((now - self.start_time).total_seconds() // 60))

    def has_time_expired(self, now=None) -> bool:
        limit = self.quiz.time_limit
        return bool(limit) and self.is_in_progress and self.elapsed_minutes(now) >= limit

    @property
    def time_remaining(self) -> int | None:
        limit = self.quiz.time_limit
        if not limit or not self.is_in_progress:
            return None
        return max(0, limit - self.elapsed_minutes())

    @property
    def percentage_score(self) -> float | None:
        if self.score is None:
            return None
        total = self.quiz.total_points
        if not total:
            return 0.0
        return round(float(self.score) / float(total) * 100, 2)
