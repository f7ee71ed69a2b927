"""Quiz authoring, attempts and manual grading."""

from django.db.models import Sum
from django.shortcuts import get_object_or_404

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiResponse

from LearningManagementApp.api.mixins import CourseScopedMixin, PaginationMixin
from LearningManagementApp.api.serializers.quizzes import (
    AnswersSerializer,
    AttemptDetailSerializer,
    AttemptFeedbackSerializer,
    AttemptSerializer,
    ManualGradeSerializer,
    QuestionReorderSerializer,
    QuestionStaffSerializer,
    QuestionWriteSerializer,
    QuizDetailSerializer,
    QuizReadSerializer,
    QuizWriteSerializer,
    SubmitAttemptSerializer,
)
from LearningManagementApp.api.throttles import QuizAnswerRateThrottle
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, THROTTLED_RESPONSE, VALIDATION_RESPONSE, x_permissions,
)
from LearningManagementApp.core import access
from LearningManagementApp.core.permissions import IsAttemptParticipant, IsCourseMember
from LearningManagementApp.domain.services import attempt_service, quiz_service
from LearningManagementApp.quizzes.models import Quiz, QuizAttempt, QuizQuestion

COURSE_PATH = [OpenApiParameter("course_pk", int, OpenApiParameter.PATH)]
QUIZ_PATH = COURSE_PATH + [OpenApiParameter("quiz_pk", int, OpenApiParameter.PATH)]
INSTRUCTOR_OR_ADMIN = x_permissions("instructor", "admin", ownership="course-instructor")

ATTEMPT_STARTED_MESSAGE = "Quiz attempt started."
ATTEMPT_RESUMED_MESSAGE = "Existing in-progress attempt returned."
ANSWERS_SAVED_MESSAGE = "Answers saved."


class QuizScopedMixin(CourseScopedMixin):
    """Resolve the quiz of ``courses/<course_pk>/quizzes/<quiz_pk>/...`` routes."""

    def get_quiz(self) -> Quiz:
        quiz = getattr(self, "_resolved_quiz", None)
        if quiz is None:
            quiz = get_object_or_404(Quiz.objects.select_related("course"), pk=self.kwargs["quiz_pk"], course=self.get_course())
            self._resolved_quiz = quiz
        return quiz


# ---------- Quizzes ----------
@extend_schema_view(
    list=extend_schema(tags=["Quizzes"], responses={200: QuizReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(
        tags=["Quizzes"],
        description="Staff receive the questions with answer keys; students the quiz summary.",
        responses={200: QuizDetailSerializer, **AUTH_RESPONSES},
    ),
    create=extend_schema(
        tags=["Quizzes"], request=QuizWriteSerializer,
        responses={201: QuizDetailSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    update=extend_schema(
        tags=["Quizzes"], request=QuizWriteSerializer,
        responses={200: QuizDetailSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Quizzes"], request=QuizWriteSerializer,
        responses={200: QuizDetailSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(tags=["Quizzes"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
    publish=extend_schema(tags=["Quizzes"], request=None, responses={200: QuizReadSerializer, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
    unpublish=extend_schema(tags=["Quizzes"], request=None, responses={200: QuizReadSerializer, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
)
@extend_schema(parameters=COURSE_PATH)
class QuizViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Quizzes of a course; students only see published ones."""
    queryset = Quiz.objects.select_related("course")

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsCourseMember()]

    def get_serializer_class(self):
        if self.action in ("create", "update", "partial_update"):
            return QuizWriteSerializer
        return QuizReadSerializer

    def get_queryset(self):
        return quiz_service.quizzes_for(self.request.user, self.get_course())

    def _is_staff(self) -> bool:
        user = self.request.user
        return access.is_admin(user) or access.is_course_staff(user, self.get_course())

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), QuizReadSerializer)

    def retrieve(self, request: Request, *args, **kwargs) -> Response:
        serializer_cls = QuizDetailSerializer if self._is_staff() else QuizReadSerializer
        return Response(serializer_cls(self.get_object()).data)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a quiz with its questions."""
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        questions = data.pop("questions", None)
        is_published = data.pop("is_published", True)
        quiz = quiz_service.create_quiz(request.user, self.get_course(), data, questions, is_published=is_published)
        return Response(QuizDetailSerializer(quiz).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        """Update quiz settings; a ``questions`` list replaces the question set."""
        quiz = self.get_object()
        ser = self.get_serializer(quiz, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        questions = data.pop("questions", None)
        is_published = data.pop("is_published", None)
        quiz = quiz_service.update_quiz(request.user, quiz, data, questions, is_published=is_published)
        return Response(QuizDetailSerializer(quiz).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        quiz_service.delete_quiz(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="publish")
    def publish(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        quiz = quiz_service.set_published(request.user, self.get_object(), True)
        return Response(QuizReadSerializer(quiz).data)

    @action(detail=True, methods=["post"], url_path="unpublish")
    def unpublish(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        quiz = quiz_service.set_published(request.user, self.get_object(), False)
        return Response(QuizReadSerializer(quiz).data)


# ---------- Questions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Quiz questions"],
        responses={200: OpenApiResponse(description="Questions with question_count and total_points."), **AUTH_RESPONSES},
        extensions=x_permissions("instructor", "teaching_assistant", "admin"),
    ),
    retrieve=extend_schema(tags=["Quiz questions"], responses={200: QuestionStaffSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Quiz questions"], request=QuestionWriteSerializer,
        responses={201: QuestionStaffSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    update=extend_schema(
        tags=["Quiz questions"], request=QuestionWriteSerializer,
        responses={200: QuestionStaffSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Quiz questions"], request=QuestionWriteSerializer,
        responses={200: QuestionStaffSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(tags=["Quiz questions"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
    reorder=extend_schema(
        tags=["Quiz questions"], request=QuestionReorderSerializer,
        responses={204: None, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
)
@extend_schema(parameters=QUIZ_PATH)
class QuestionViewSet(QuizScopedMixin, viewsets.ModelViewSet):
    """Question endpoints are for course staff; they expose answer keys."""
    queryset = QuizQuestion.objects.all()
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        return QuestionWriteSerializer if self.action in ("create", "update", "partial_update") else QuestionStaffSerializer

    def initial(self, request: Request, *args, **kwargs) -> None:
        super().initial(request, *args, **kwargs)
        course = self.get_course()
        if not (access.is_admin(request.user) or access.is_course_staff(request.user, course)):
            self.permission_denied(request, message="Instructor or teaching assistant role required")

    def get_queryset(self):
        return self.get_quiz().questions.prefetch_related("options")

    def list(self, request: Request, *args, **kwargs) -> Response:
        questions = self.get_queryset()
        return Response({
            "questions": QuestionStaffSerializer(questions, many=True).data,
            "question_count": questions.count(),
            "total_points": questions.aggregate(total=Sum("points"))["total"] or 0,
        })

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        question = quiz_service.add_question(request.user, self.get_quiz(), ser.validated_data)
        return Response(QuestionStaffSerializer(question).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        question = self.get_object()
        ser = self.get_serializer(data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        question = quiz_service.update_question(request.user, question, ser.validated_data)
        return Response(QuestionStaffSerializer(question).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        quiz_service.delete_question(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request: Request, *args, **kwargs) -> Response:
        ser = QuestionReorderSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        quiz_service.reorder_questions(request.user, self.get_quiz(), ser.validated_data["question_ids"])
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Attempts ----------
@extend_schema_view(
    list=extend_schema(tags=["Quiz attempts"], responses={200: AttemptSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Quiz attempts"], responses={200: AttemptDetailSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Quiz attempts"],
        request=None,
        description="Start an attempt, or resume the running one (200).",
        responses={
            201: AttemptDetailSerializer,
            200: OpenApiResponse(description="Existing in-progress attempt returned."),
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions=x_permissions("student", ownership="self"),
    ),
    answers=extend_schema(
        tags=["Quiz attempts"],
        request=AnswersSerializer,
        description="Replace the saved answers. An expired attempt is submitted with its earlier answers instead.",
        responses={
            200: AttemptDetailSerializer,
            **BAD_REQUEST_RESPONSE,
            **THROTTLED_RESPONSE,
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions=x_permissions("student", ownership="attempt-owner"),
    ),
    submit=extend_schema(
        tags=["Quiz attempts"],
        request=SubmitAttemptSerializer,
        responses={200: AttemptFeedbackSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("student", ownership="attempt-owner"),
    ),
    grade=extend_schema(
        tags=["Quiz attempts"],
        request=ManualGradeSerializer,
        responses={200: AttemptDetailSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("instructor", "teaching_assistant", "admin"),
    ),
)
@extend_schema(parameters=QUIZ_PATH)
class AttemptViewSet(
    QuizScopedMixin,
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Quiz attempt lifecycle: start, save answers, submit, manual grading."""

    permission_classes = [IsAuthenticated, IsCourseMember, IsAttemptParticipant]
    throttle_classes: list[type] = []
    serializer_class = AttemptSerializer
    queryset = QuizAttempt.objects.select_related("quiz__course", "user")

    def get_throttles(self):
        """Throttle answer saving only."""
        if self.action == "answers":
            self.throttle_classes = [QuizAnswerRateThrottle]
        return super().get_throttles()

    def get_queryset(self):
        return attempt_service.attempts_for(self.request.user, self.get_quiz())

    def _detail(self, attempt: QuizAttempt) -> dict:
        return AttemptDetailSerializer(attempt, context=self.get_serializer_context()).data

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), AttemptSerializer)

    def retrieve(self, request: Request, *args, **kwargs) -> Response:
        return Response(self._detail(self.get_object()))

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Start a new attempt or return the running one."""
        attempt, created = attempt_service.start_attempt(request.user, self.get_quiz())
        if created:
            return Response(
                {"message": ATTEMPT_STARTED_MESSAGE, "attempt": self._detail(attempt)},
                status=status.HTTP_201_CREATED,
            )
        return Response({"message": ATTEMPT_RESUMED_MESSAGE, "attempt": self._detail(attempt)})

    @action(detail=True, methods=["put"], url_path="answers")
    def answers(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Save answers of a running attempt."""
        attempt = self.get_object()
        ser = AnswersSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        attempt, auto_submitted = attempt_service.save_answers(request.user, attempt, ser.validated_data["answers"])
        if auto_submitted:
            return Response({
                "message": attempt_service.TIME_EXPIRED_MESSAGE,
                "auto_submitted": True,
                "feedback": AttemptFeedbackSerializer(attempt_service.feedback(attempt)).data,
                "attempt": self._detail(attempt),
            })
        return Response({"message": ANSWERS_SAVED_MESSAGE, "auto_submitted": False, "attempt": self._detail(attempt)})

    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Submit the attempt and return the score summary."""
        attempt = self.get_object()
        ser = SubmitAttemptSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        attempt = attempt_service.submit_attempt(request.user, attempt, ser.validated_data.get("answers"))
        return Response({
            "feedback": AttemptFeedbackSerializer(attempt_service.feedback(attempt)).data,
            "attempt": self._detail(attempt),
        })

    @action(detail=True, methods=["post"], url_path="grade")
    def grade(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Score free-text answers (course staff)."""
        attempt = self.get_object()
        ser = ManualGradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        attempt = attempt_service.grade_attempt(
            request.user, attempt, ser.validated_data["scores"], ser.validated_data["feedback"],
        )
        return Response(self._detail(attempt))
