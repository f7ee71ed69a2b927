"""Serializers for quiz authoring, attempts and grading.

Students never receive ``is_correct``, ``correct_answer`` or explanations while an
attempt is running; views pick the staff or student representation.
"""

from decimal import Decimal

from rest_framework import serializers

from LearningManagementApp.api.serializers.users import UserSerializer
from LearningManagementApp.core.choices import QuestionType
from LearningManagementApp.domain.services import attempt_service
from LearningManagementApp.quizzes.models import Quiz, QuizAttempt, QuizQuestion, QuizQuestionOption


# ---------- Authoring ----------
class OptionWriteSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False)
    option_text = serializers.CharField(max_length=1000)
    is_correct = serializers.BooleanField(default=False)
    explanation = serializers.CharField(required=False, allow_blank=True, default="")


class QuestionWriteSerializer(serializers.Serializer):
    """Question payload; type-specific option rules are enforced by the quiz service."""
    id = serializers.IntegerField(required=False)
    question_text = serializers.CharField()
    question_type = serializers.ChoiceField(choices=QuestionType.choices)
    points = serializers.DecimalField(max_digits=6, decimal_places=2, min_value=Decimal("0"), required=False)
    correct_answer = serializers.CharField(required=False, allow_blank=True, default="")
    options = OptionWriteSerializer(many=True, required=False)


class QuizWriteSerializer(serializers.ModelSerializer):
    """Quiz settings plus an optional nested question list (synced on update)."""
    questions = QuestionWriteSerializer(many=True, required=False)
    is_published = serializers.BooleanField(required=False, write_only=True)

    class Meta:
        model = Quiz
        fields = [
            "title", "description", "module", "category", "open_date", "close_date", "time_limit", "attempts_allowed",
            "shuffle_questions", "shuffle_answers", "show_results", "questions", "is_published",
        ]

    def validate(self, data):
        open_date = data.get("open_date", getattr(self.instance, "open_date", None))
        close_date = data.get("close_date", getattr(self.instance, "close_date", None))
        if open_date and close_date and close_date <= open_date:
            raise serializers.ValidationError({"close_date": ["The close date must be after the open date."]})
        return data


class OptionStaffSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizQuestionOption
        fields = ["id", "option_text", "is_correct", "order", "explanation"]


class OptionStudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizQuestionOption
        fields = ["id", "option_text", "order"]


class QuestionStaffSerializer(serializers.ModelSerializer):
    options = OptionStaffSerializer(many=True, read_only=True)

    class Meta:
        model = QuizQuestion
        fields = ["id", "question_text", "question_type", "points", "order", "correct_answer", "options"]


class QuizReadSerializer(serializers.ModelSerializer):
    question_count = serializers.SerializerMethodField()
    total_points = serializers.DecimalField(max_digits=8, decimal_places=2, read_only=True)
    is_published = serializers.BooleanField(read_only=True)

    class Meta:
        model = Quiz
        fields = [
            "id", "course", "module", "category", "title", "description", "open_date", "close_date", "time_limit",
            "attempts_allowed", "shuffle_questions", "shuffle_answers", "show_results",
            "question_count", "total_points", "is_published", "created_by", "created_at", "updated_at",
        ]

    def get_question_count(self, obj: Quiz) -> int:
        return obj.questions.count()


class QuizDetailSerializer(QuizReadSerializer):
    """Staff view of a quiz including its questions and answer keys."""
    questions = QuestionStaffSerializer(many=True, read_only=True)

    class Meta(QuizReadSerializer.Meta):
        fields = QuizReadSerializer.Meta.fields + ["questions"]


class QuestionReorderSerializer(serializers.Serializer):
    question_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


# ---------- Attempts ----------
class AttemptSerializer(serializers.ModelSerializer):
    """Attempt summary; timing fields are computed at read time."""
    user = UserSerializer(read_only=True)
    time_remaining = serializers.IntegerField(read_only=True, allow_null=True)
    percentage_score = serializers.FloatField(read_only=True, allow_null=True)
    total_points = serializers.SerializerMethodField()

    class Meta:
        model = QuizAttempt
        fields = [
            "id", "quiz", "user", "attempt_number", "status", "start_time", "end_time", "time_taken",
            "time_remaining", "score", "total_points", "percentage_score", "is_graded", "feedback",
        ]

    def get_total_points(self, obj: QuizAttempt) -> Decimal:
        return obj.quiz.total_points


class AttemptDetailSerializer(AttemptSerializer):
    """Attempt with its questions in served order.

    Answer keys are included only when ``attempt_service.can_reveal_answers`` allows it
    for the requesting user.
    """
    questions = serializers.SerializerMethodField()
    answers = serializers.JSONField(read_only=True)
    manual_scores = serializers.JSONField(read_only=True)

    class Meta(AttemptSerializer.Meta):
        fields = AttemptSerializer.Meta.fields + ["answers", "manual_scores", "questions"]

    def get_questions(self, obj: QuizAttempt) -> list[dict]:
        request = self.context.get("request")
        reveal = bool(request) and attempt_service.can_reveal_answers(request.user, obj)
        option_cls = OptionStaffSerializer if reveal else OptionStudentSerializer
        questions = []
        for question in attempt_service.ordered_questions(obj):
            item = {
                "id": question.pk,
                "question_text": question.question_text,
                "question_type": question.question_type,
                "points": question.points,
                "options": option_cls(attempt_service.ordered_options(obj, question), many=True).data,
            }
            if reveal:
                item["correct_answer"] = question.correct_answer
            questions.append(item)
        return questions


class AnswersSerializer(serializers.Serializer):
    """Answers keyed by question id: option id, "true"/"false", a list of option ids or free text."""
    answers = serializers.DictField(child=serializers.JSONField(allow_null=True), allow_empty=True)


class SubmitAttemptSerializer(serializers.Serializer):
    answers = serializers.DictField(child=serializers.JSONField(allow_null=True), required=False)


class AttemptFeedbackSerializer(serializers.Serializer):
    score = serializers.DecimalField(max_digits=8, decimal_places=2)
    percentage = serializers.FloatField(allow_null=True)
    total_points = serializers.DecimalField(max_digits=8, decimal_places=2)
    is_graded = serializers.BooleanField()
    message = serializers.CharField()


class ManualGradeSerializer(serializers.Serializer):
    """Points per free-text question id."""
    scores = serializers.DictField(
        child=serializers.DecimalField(max_digits=6, decimal_places=2, min_value=Decimal("0")),
        allow_empty=False,
    )
    feedback = serializers.CharField(required=False, allow_blank=True, default="")
