"""Announcements, discussions and threaded replies."""

from django.shortcuts import get_object_or_404

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter

from LearningManagementApp.api.mixins import CourseScopedMixin, PaginationMixin
from LearningManagementApp.api.serializers.communication import (
    AnnouncementReadSerializer,
    AnnouncementWriteSerializer,
    DiscussionReadSerializer,
    DiscussionWriteSerializer,
    ReplyReadSerializer,
    ReplyTreeSerializer,
    ReplyWriteSerializer,
)
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, VALIDATION_RESPONSE, x_permissions,
)
from LearningManagementApp.communication.models import Announcement, Discussion, DiscussionReply
from LearningManagementApp.core.permissions import IsCourseMember
from LearningManagementApp.domain.services import communication_service

COURSE_PATH = [OpenApiParameter("course_pk", int, OpenApiParameter.PATH)]
REPLY_PATH = [OpenApiParameter("reply_id", int, OpenApiParameter.PATH)]
STAFF = x_permissions("instructor", "teaching_assistant", "admin")
MANAGERS = x_permissions("manage-permission")


# ---------- Announcements ----------
@extend_schema_view(
    list=extend_schema(tags=["Announcements"], responses={200: AnnouncementReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Announcements"], responses={200: AnnouncementReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Announcements"], request=AnnouncementWriteSerializer,
        responses={201: AnnouncementReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=STAFF,
    ),
    update=extend_schema(
        tags=["Announcements"], request=AnnouncementWriteSerializer,
        responses={200: AnnouncementReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS,
    ),
    partial_update=extend_schema(
        tags=["Announcements"], request=AnnouncementWriteSerializer,
        responses={200: AnnouncementReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS,
    ),
    destroy=extend_schema(tags=["Announcements"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS),
)
@extend_schema(parameters=COURSE_PATH)
class AnnouncementViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Course announcements, pinned first then newest."""
    queryset = Announcement.objects.select_related("author")

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsCourseMember()]

    def get_serializer_class(self):
        if self.action in ("create", "update", "partial_update"):
            return AnnouncementWriteSerializer
        return AnnouncementReadSerializer

    def get_queryset(self):
        return communication_service.announcements_for(self.request.user, self.get_course())

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), AnnouncementReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        announcement = communication_service.create_announcement(request.user, self.get_course(), ser.validated_data)
        return Response(AnnouncementReadSerializer(announcement).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        announcement = self.get_object()
        ser = self.get_serializer(announcement, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        announcement = communication_service.update_announcement(request.user, announcement, ser.validated_data)
        return Response(AnnouncementReadSerializer(announcement).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        communication_service.delete_announcement(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Discussions ----------
@extend_schema_view(
    list=extend_schema(tags=["Discussions"], responses={200: DiscussionReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Discussions"], responses={200: DiscussionReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Discussions"], request=DiscussionWriteSerializer,
        responses={201: DiscussionReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=STAFF,
    ),
    update=extend_schema(
        tags=["Discussions"], request=DiscussionWriteSerializer,
        responses={200: DiscussionReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS,
    ),
    partial_update=extend_schema(
        tags=["Discussions"], request=DiscussionWriteSerializer,
        responses={200: DiscussionReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS,
    ),
    destroy=extend_schema(tags=["Discussions"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS),
    lock=extend_schema(tags=["Discussions"], request=None, responses={200: DiscussionReadSerializer, **AUTH_RESPONSES}, extensions=MANAGERS),
    unlock=extend_schema(tags=["Discussions"], request=None, responses={200: DiscussionReadSerializer, **AUTH_RESPONSES}, extensions=MANAGERS),
)
@extend_schema(parameters=COURSE_PATH)
class DiscussionViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Discussion threads and their replies."""
    queryset = Discussion.objects.select_related("author")

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsCourseMember()]

    def get_serializer_class(self):
        if self.action in ("create", "update", "partial_update"):
            return DiscussionWriteSerializer
        return DiscussionReadSerializer

    def get_queryset(self):
        return communication_service.discussions_for(self.request.user, self.get_course())

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), DiscussionReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        discussion = communication_service.create_discussion(request.user, self.get_course(), ser.validated_data)
        return Response(DiscussionReadSerializer(discussion).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        discussion = self.get_object()
        ser = self.get_serializer(discussion, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        discussion = communication_service.update_discussion(request.user, discussion, ser.validated_data)
        return Response(DiscussionReadSerializer(discussion).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        communication_service.delete_discussion(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="lock")
    def lock(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        discussion = communication_service.set_locked(request.user, self.get_object(), True)
        return Response(DiscussionReadSerializer(discussion).data)

    @action(detail=True, methods=["post"], url_path="unlock")
    def unlock(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        discussion = communication_service.set_locked(request.user, self.get_object(), False)
        return Response(DiscussionReadSerializer(discussion).data)

    @extend_schema(methods=["GET"], tags=["Discussions"], responses={200: ReplyTreeSerializer, **AUTH_RESPONSES})
    @extend_schema(
        methods=["POST"],
        tags=["Discussions"],
        request=ReplyWriteSerializer,
        responses={201: ReplyReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("student", "instructor", "teaching_assistant", "admin"),
    )
    @action(detail=True, methods=["get", "post"], url_path="replies")
    def replies(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        """GET the threaded replies; POST a new reply (optionally under ``parent_id``)."""
        discussion = self.get_object()
        if request.method == "GET":
            tree = communication_service.reply_tree(request.user, discussion)
            return Response(ReplyTreeSerializer(tree).data)
        ser = ReplyWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        parent = None
        parent_id = ser.validated_data.get("parent_id")
        if parent_id is not None:
            parent = DiscussionReply.objects.filter(pk=parent_id).first()
            if parent is None:
                raise ValidationError({"parent_id": ["Reply not found."]})
        reply = communication_service.create_reply(request.user, discussion, ser.validated_data["content"], parent)
        return Response(ReplyReadSerializer(reply).data, status=status.HTTP_201_CREATED)

    def _reply(self, reply_id) -> DiscussionReply:
        return get_object_or_404(
            DiscussionReply.objects.select_related("discussion__course", "author"),
            pk=reply_id,
            discussion=self.get_object(),
        )

    @extend_schema(
        methods=["PATCH"],
        tags=["Discussions"],
        parameters=REPLY_PATH,
        request=ReplyWriteSerializer,
        responses={200: ReplyReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=x_permissions("reply-author"),
    )
    @extend_schema(
        methods=["DELETE"],
        tags=["Discussions"],
        parameters=REPLY_PATH,
        responses={**DELETED_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("reply-author", "instructor", "teaching_assistant", "admin"),
    )
    @action(detail=True, methods=["patch", "delete"], url_path=r"replies/(?P<reply_id>\d+)")
    def update_reply(
        self, request: Request, pk: int | None = None, course_pk: int | None = None, reply_id: int | None = None
    ) -> Response:
        """PATCH edits the caller's own reply; DELETE removes it (or blanks it when it has answers)."""
        reply = self._reply(reply_id)
        if request.method == "DELETE":
            communication_service.delete_reply(request.user, reply)
            return Response(status=status.HTTP_204_NO_CONTENT)
        ser = ReplyWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        reply = communication_service.update_reply(request.user, reply, ser.validated_data.get("content", ""))
        return Response(ReplyReadSerializer(reply).data)
