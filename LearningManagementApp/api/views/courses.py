"""Course CRUD, membership management and self-enrollment."""

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiResponse

from LearningManagementApp.api.mixins import PaginationMixin
from LearningManagementApp.api.serializers.courses import (
    CourseReadSerializer,
    CourseWriteSerializer,
    MembershipReadSerializer,
    MembershipWriteSerializer,
    StudentSyncSerializer,
)
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, VALIDATION_RESPONSE, x_permissions,
)
from LearningManagementApp.core.access import can_manage_course
from LearningManagementApp.core.choices import UserRole
from LearningManagementApp.core.permissions import HasRole, IsAdminRole, IsCourseMember
from LearningManagementApp.courses.models import Course
from LearningManagementApp.domain.services import course_service

User = get_user_model()

INSTRUCTOR_OR_ADMIN = x_permissions("instructor", "admin", ownership="course-instructor")


@extend_schema_view(
    list=extend_schema(tags=["Courses"], responses={200: CourseReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Courses"], responses={200: CourseReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={201: CourseReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("instructor", "admin", ownership="owner-on-create"),
    ),
    update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(
        tags=["Courses"],
        responses={**DELETED_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("admin"),
    ),
    members=extend_schema(
        tags=["Membership"],
        responses={200: MembershipReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    add_student=extend_schema(
        tags=["Membership"],
        request=MembershipWriteSerializer,
        responses={201: MembershipReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    add_teaching_assistant=extend_schema(
        tags=["Membership"],
        request=MembershipWriteSerializer,
        responses={201: MembershipReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    sync_students=extend_schema(
        tags=["Membership"],
        request=StudentSyncSerializer,
        responses={200: MembershipReadSerializer(many=True), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    remove_member=extend_schema(
        tags=["Membership"],
        parameters=[OpenApiParameter("user_id", int, OpenApiParameter.PATH)],
        responses={204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    enroll=extend_schema(
        tags=["Membership"],
        request=None,
        responses={201: MembershipReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("student", ownership="self"),
    ),
)
class CourseViewSet(PaginationMixin, viewsets.ModelViewSet):
    """CRUD and membership management for courses."""
    queryset = Course.objects.all().select_related("instructor")
    serializer_class = CourseWriteSerializer

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            return CourseReadSerializer
        if self.action == "members":
            return MembershipReadSerializer
        if self.action == "sync_students":
            return StudentSyncSerializer
        if self.action in ("add_student", "add_teaching_assistant"):
            return MembershipWriteSerializer
        return CourseWriteSerializer

    def get_permissions(self) -> list:
        if self.action in ("list", "retrieve"):
            return [AllowAny()]
        if self.action == "create":
            return [IsAuthenticated(), HasRole(UserRole.INSTRUCTOR)]
        if self.action == "destroy":
            return [IsAuthenticated(), IsAdminRole()]
        if self.action == "enroll":
            return [IsAuthenticated(), HasRole(UserRole.STUDENT)]
        if self.action == "members":
            return [IsAuthenticated(), IsCourseMember()]
        return [IsAuthenticated()]

    def get_queryset(self):
        """Return course queryset filtered by visibility."""
        return Course.objects.visible_to(self.request.user).select_related("instructor").order_by("id")

    def list(self, request: Request, *args, **kwargs) -> Response:
        """List courses visible to the requesting user."""
        return self.paginate_and_respond(self.get_queryset(), CourseReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a course and return read representation."""
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        course = course_service.create_course(request.user, ser.validated_data)
        return Response(CourseReadSerializer(course).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        """Update a course (instructor or administrator)."""
        course = self.get_object()
        ser = self.get_serializer(course, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        course = course_service.update_course(request.user, course, ser.validated_data)
        return Response(CourseReadSerializer(course).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        """Delete a course (administrators only)."""
        course_service.delete_course(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path="members")
    def members(self, request: Request, pk: int | None = None) -> Response:
        course = self.get_object()
        memberships = course.memberships.select_related("user").order_by("role", "user__last_name", "id")
        return self.paginate_and_respond(memberships, MembershipReadSerializer)

    def _member_user(self, request: Request) -> User:
        ser = MembershipWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return get_object_or_404(User, pk=ser.validated_data["user_id"])

    @action(detail=True, methods=["post"], url_path="members/add-student")
    def add_student(self, request: Request, pk: int | None = None) -> Response:
        """Add a student to the course."""
        course = self.get_object()
        membership = course_service.add_student(request.user, course, self._member_user(request))
        return Response(MembershipReadSerializer(membership).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="members/add-teaching-assistant")
    def add_teaching_assistant(self, request: Request, pk: int | None = None) -> Response:
        """Add a teaching assistant to the course."""
        course = self.get_object()
        membership = course_service.add_teaching_assistant(request.user, course, self._member_user(request))
        return Response(MembershipReadSerializer(membership).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["put"], url_path="members/students")
    def sync_students(self, request: Request, pk: int | None = None) -> Response:
        """Replace the course's student list."""
        course = self.get_object()
        ser = StudentSyncSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        students = User.objects.filter(pk__in=ser.validated_data["student_ids"])
        memberships = course_service.sync_students(request.user, course, students)
        return Response(MembershipReadSerializer(memberships, many=True).data)

    @action(detail=True, methods=["delete"], url_path=r"members/(?P<user_id>\d+)")
    def remove_member(self, request: Request, pk: int | None = None, user_id: int | None = None) -> Response:
        """Remove a member from the course."""
        course = self.get_object()
        user = get_object_or_404(User, pk=user_id)
        course_service.remove_member(request.user, course, user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="enroll")
    def enroll(self, request: Request, pk: int | None = None) -> Response:
        """Self-enroll in an open course."""
        course = self.get_object()
        membership = course_service.enroll_self(request.user, course)
        return Response(MembershipReadSerializer(membership).data, status=status.HTTP_201_CREATED)

    def get_object(self):
        course = super().get_object()
        if self.action in ("update", "partial_update") and not can_manage_course(self.request.user, course):
            self.permission_denied(self.request, message="Instructor role required")
        return course
