"""Assignments, submissions, grading and the gradebook."""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiResponse

from LearningManagementApp.api.mixins import CourseScopedMixin, PaginationMixin
from LearningManagementApp.api.serializers.learning import (
    AssignmentReadSerializer,
    AssignmentWriteSerializer,
    BulkGradeSerializer,
    GradebookRowSerializer,
    GradeCategorySerializer,
    GradeHistorySerializer,
    GradeWriteSerializer,
    SubmissionReadSerializer,
    SubmissionWriteSerializer,
)
from LearningManagementApp.api.throttles import SubmissionRateThrottle
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, THROTTLED_RESPONSE, VALIDATION_RESPONSE, x_permissions,
)
from LearningManagementApp.core import access
from LearningManagementApp.core.permissions import IsCourseMember, IsSubmissionParticipant
from LearningManagementApp.domain.services import acl_service, gradebook_service, learning_service
from LearningManagementApp.learning.models import Assignment, GradeCategory, Submission

COURSE_PATH = [OpenApiParameter("course_pk", int, OpenApiParameter.PATH)]
ASSIGNMENT_PATH = COURSE_PATH + [OpenApiParameter("assignment_pk", int, OpenApiParameter.PATH)]
INSTRUCTOR_OR_ADMIN = x_permissions("instructor", "admin", ownership="course-instructor")
GRADERS = x_permissions("instructor", "teaching_assistant", "admin")


# ---------- Assignments ----------
@extend_schema_view(
    list=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Assignments"], request=AssignmentWriteSerializer,
        responses={201: AssignmentReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    update=extend_schema(
        tags=["Assignments"], request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Assignments"], request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(tags=["Assignments"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
)
@extend_schema(parameters=COURSE_PATH)
class AssignmentViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Assignments of a course; students only see published ones."""
    queryset = Assignment.objects.select_related("course")

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsCourseMember()]

    def get_serializer_class(self):
        return AssignmentWriteSerializer if self.action in ("create", "update", "partial_update") else AssignmentReadSerializer

    def get_queryset(self):
        return learning_service.assignments_for(self.request.user, self.get_course())

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), AssignmentReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        is_published = data.pop("is_published", True)
        assignment = learning_service.create_assignment(request.user, self.get_course(), data, is_published=is_published)
        return Response(AssignmentReadSerializer(assignment).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        assignment = self.get_object()
        ser = self.get_serializer(assignment, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        data.pop("is_published", None)
        assignment = learning_service.update_assignment(request.user, assignment, data)
        return Response(AssignmentReadSerializer(assignment).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        learning_service.delete_assignment(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Submissions"],
        request={"multipart/form-data": SubmissionWriteSerializer},
        description=(
            "Create a submission. Endpoint is rate-limited; a second submission for the same "
            "assignment is rejected with 409 and must go through the update endpoint."
        ),
        responses={
            201: SubmissionReadSerializer,
            409: OpenApiResponse(description="Already submitted."),
            **BAD_REQUEST_RESPONSE,
            **THROTTLED_RESPONSE,
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions=x_permissions("student", ownership="self"),
    ),
    partial_update=extend_schema(
        tags=["Submissions"],
        request={"multipart/form-data": SubmissionWriteSerializer},
        description="Resubmit: replace text/url, drop listed attachments, add files. Clears the previous grade.",
        responses={200: SubmissionReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("student", ownership="submission-owner"),
    ),
    grade=extend_schema(
        tags=["Grading"], request=GradeWriteSerializer,
        responses={200: SubmissionReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=GRADERS,
    ),
    history=extend_schema(
        tags=["Grading"], responses={200: GradeHistorySerializer(many=True), **AUTH_RESPONSES}, extensions=GRADERS,
    ),
)
@extend_schema(parameters=ASSIGNMENT_PATH)
class SubmissionViewSet(
    PaginationMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """Submission creation, resubmission, listing and grading."""

    permission_classes = [IsAuthenticated, IsCourseMember, IsSubmissionParticipant]
    throttle_classes: list[type] = []
    http_method_names = ["get", "post", "patch", "head", "options"]
    queryset = Submission.objects.select_related("assignment__course", "student", "graded_by")

    def get_serializer_class(self):
        return SubmissionWriteSerializer if self.action in ("create", "partial_update") else SubmissionReadSerializer

    def get_throttles(self):
        """Apply rate throttle only on create."""
        if self.action == "create":
            self.throttle_classes = [SubmissionRateThrottle]
        return super().get_throttles()

    def get_assignment(self) -> Assignment:
        assignment = getattr(self, "_assignment", None)
        if assignment is None:
            try:
                assignment = Assignment.objects.select_related("course").get(
                    pk=self.kwargs["assignment_pk"], course_id=self.kwargs["course_pk"]
                )
            except (Assignment.DoesNotExist, ValueError):
                raise NotFound("Assignment not found.")
            self._assignment = assignment
        return assignment

    def get_queryset(self):
        """Staff see every submission of the assignment; students only their own."""
        assignment = self.get_assignment()
        qs = self.queryset.filter(assignment=assignment).prefetch_related("attachments")
        user = self.request.user
        if not (access.is_admin(user) or access.is_course_staff(user, assignment.course)):
            qs = qs.filter(student=user)
        return qs.order_by("-submitted_at", "-id")

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), SubmissionReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a submission."""
        ser = SubmissionWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = learning_service.submit(
            request.user,
            self.get_assignment(),
            content_text=ser.validated_data.get("content_text", ""),
            submission_url=ser.validated_data.get("submission_url", ""),
            files=ser.validated_data.get("files", []),
        )
        return Response(SubmissionReadSerializer(submission).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, *args, **kwargs) -> Response:
        """Update a submission (resubmit)."""
        submission = self.get_object()
        ser = SubmissionWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        updated = learning_service.resubmit(
            request.user,
            submission,
            content_text=ser.validated_data.get("content_text"),
            submission_url=ser.validated_data.get("submission_url"),
            add_files=ser.validated_data.get("files", []),
            remove_attachment_ids=ser.validated_data.get("remove_attachment_ids", []),
        )
        return Response(SubmissionReadSerializer(updated).data)

    @action(detail=True, methods=["post"], url_path="grade")
    def grade(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Grade a submission (course staff)."""
        submission = self.get_object()
        ser = GradeWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        graded = learning_service.grade_submission(
            request.user, submission, ser.validated_data["grade"], ser.validated_data["feedback"],
        )
        return Response(SubmissionReadSerializer(graded).data)

    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Grading history of a submission from the audit trail."""
        entries = learning_service.grade_history(request.user, self.get_object())
        return Response(GradeHistorySerializer(entries, many=True).data)


# ---------- Course-wide grading ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Grading"],
        parameters=[
            OpenApiParameter("assignment", int, OpenApiParameter.QUERY),
            OpenApiParameter("status", str, OpenApiParameter.QUERY, enum=["graded", "pending"]),
            OpenApiParameter("search", str, OpenApiParameter.QUERY, description="Student name or email."),
        ],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
        extensions=GRADERS,
    ),
    bulk_grade=extend_schema(
        tags=["Grading"], request=BulkGradeSerializer,
        responses={200: OpenApiResponse(description="Number of graded submissions."), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=GRADERS,
    ),
    statistics=extend_schema(
        tags=["Grading"], responses={200: OpenApiResponse(description="Per-assignment and overall statistics."), **AUTH_RESPONSES},
        extensions=GRADERS,
    ),
)
@extend_schema(parameters=COURSE_PATH)
class CourseSubmissionViewSet(CourseScopedMixin, PaginationMixin, viewsets.GenericViewSet):
    """Grading overview across every assignment of a course."""
    permission_classes = [IsAuthenticated]
    serializer_class = SubmissionReadSerializer

    def list(self, request: Request, *args, **kwargs) -> Response:
        params = request.query_params
        qs = learning_service.list_course_submissions(
            request.user,
            self.get_course(),
            assignment_id=params.get("assignment"),
            status=params.get("status"),
            search=params.get("search"),
        ).prefetch_related("attachments")
        return self.paginate_and_respond(qs, SubmissionReadSerializer)

    @action(detail=False, methods=["post"], url_path="bulk-grade")
    def bulk_grade(self, request: Request, course_pk: int | None = None) -> Response:
        ser = BulkGradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        count = learning_service.bulk_grade(
            request.user,
            self.get_course(),
            ser.validated_data["submission_ids"],
            ser.validated_data["grade"],
            ser.validated_data["feedback"],
        )
        return Response({"graded": count, "message": f"{count} submissions graded successfully"})

    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request: Request, course_pk: int | None = None) -> Response:
        return Response(learning_service.grading_statistics(request.user, self.get_course()))


# ---------- Gradebook ----------
@extend_schema_view(
    list=extend_schema(tags=["Gradebook"], responses={200: GradebookRowSerializer(many=True), **AUTH_RESPONSES}),
)
@extend_schema(parameters=COURSE_PATH)
class GradebookViewSet(CourseScopedMixin, viewsets.GenericViewSet):
    """Staff get every student's row; students their own."""
    permission_classes = [IsAuthenticated]
    serializer_class = GradebookRowSerializer

    def list(self, request: Request, *args, **kwargs) -> Response:
        rows = gradebook_service.course_gradebook(request.user, self.get_course())
        return Response(GradebookRowSerializer(rows, many=True).data)


@extend_schema_view(
    list=extend_schema(tags=["Gradebook"], responses={200: GradeCategorySerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Gradebook"], responses={200: GradeCategorySerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Gradebook"], request=GradeCategorySerializer,
        responses={201: GradeCategorySerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    update=extend_schema(
        tags=["Gradebook"], request=GradeCategorySerializer,
        responses={200: GradeCategorySerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Gradebook"], request=GradeCategorySerializer,
        responses={200: GradeCategorySerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(tags=["Gradebook"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
)
@extend_schema(parameters=COURSE_PATH)
class GradeCategoryViewSet(CourseScopedMixin, viewsets.ModelViewSet):
    """Weighted gradebook categories of a course."""
    serializer_class = GradeCategorySerializer
    queryset = GradeCategory.objects.all()

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsCourseMember()]

    def get_queryset(self):
        return self.get_course().grade_categories.order_by("name")

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        category = gradebook_service.save_category(request.user, self.get_course(), ser.validated_data)
        return Response(GradeCategorySerializer(category).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        category = self.get_object()
        ser = self.get_serializer(category, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        category = gradebook_service.save_category(request.user, self.get_course(), ser.validated_data, category)
        return Response(GradeCategorySerializer(category).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        gradebook_service.delete_category(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)
