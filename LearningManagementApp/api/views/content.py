"""Course modules, module resources and pages."""

from django.shortcuts import get_object_or_404

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter

from LearningManagementApp.api.mixins import CourseScopedMixin, PaginationMixin
from LearningManagementApp.api.serializers.content import (
    ModuleReadSerializer,
    ModuleResourceSerializer,
    ModuleWriteSerializer,
    PageReadSerializer,
    PageWriteSerializer,
    ReorderSerializer,
    StatusSerializer,
)
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, x_permissions,
)
from LearningManagementApp.content.models import CourseModule, Page
from LearningManagementApp.core.access import can_view_course
from LearningManagementApp.domain.services import content_service

COURSE_PATH = [OpenApiParameter("course_pk", int, OpenApiParameter.PATH)]
INSTRUCTOR_OR_ADMIN = x_permissions("instructor", "admin", ownership="course-instructor")


# ---------- Modules ----------
@extend_schema_view(
    list=extend_schema(tags=["Modules"], responses={200: ModuleReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Modules"], responses={200: ModuleReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Modules"],
        request=ModuleWriteSerializer,
        responses={201: ModuleReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    update=extend_schema(
        tags=["Modules"], request=ModuleWriteSerializer,
        responses={200: ModuleReadSerializer, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    partial_update=extend_schema(
        tags=["Modules"], request=ModuleWriteSerializer,
        responses={200: ModuleReadSerializer, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    destroy=extend_schema(tags=["Modules"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN),
    reorder=extend_schema(
        tags=["Modules"], request=ReorderSerializer,
        responses={204: None, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    set_status=extend_schema(
        tags=["Modules"], request=StatusSerializer,
        responses={200: ModuleReadSerializer, **AUTH_RESPONSES}, extensions=INSTRUCTOR_OR_ADMIN,
    ),
    add_resource=extend_schema(
        tags=["Modules"], request=ModuleResourceSerializer,
        responses={201: ModuleResourceSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    remove_resource=extend_schema(
        tags=["Modules"],
        parameters=[OpenApiParameter("resource_id", int, OpenApiParameter.PATH)],
        responses={**DELETED_RESPONSE, **AUTH_RESPONSES},
        extensions=INSTRUCTOR_OR_ADMIN,
    ),
    reorder_pages=extend_schema(
        tags=["Pages"], request=ReorderSerializer,
        responses={204: None, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("manage-permission"),
    ),
)
@extend_schema(parameters=COURSE_PATH)
class ModuleViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Ordered units of a course; students only see published modules they may view."""
    queryset = CourseModule.objects.select_related("course").prefetch_related("resources")
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        return ModuleWriteSerializer if self.action in ("create", "update", "partial_update") else ModuleReadSerializer

    def get_queryset(self):
        return content_service.visible_modules(self.request.user, self.get_course()).prefetch_related("resources")

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), ModuleReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        module = content_service.create_module(request.user, self.get_course(), ser.validated_data)
        return Response(ModuleReadSerializer(module).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        module = self.get_object()
        ser = self.get_serializer(module, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        module = content_service.update_module(request.user, module, ser.validated_data)
        return Response(ModuleReadSerializer(module).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        content_service.delete_module(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request: Request, course_pk: int | None = None) -> Response:
        ser = ReorderSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        content_service.reorder_modules(request.user, self.get_course(), ser.validated_data["ids"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        """Publish, archive or return a module to draft."""
        ser = StatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        module = content_service.set_module_status(request.user, self.get_object(), ser.validated_data["status"])
        return Response(ModuleReadSerializer(module).data)

    @action(detail=True, methods=["post"], url_path="resources")
    def add_resource(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        ser = ModuleResourceSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        resource = content_service.add_resource(request.user, self.get_object(), ser.validated_data)
        return Response(ModuleResourceSerializer(resource).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"resources/(?P<resource_id>\d+)")
    def remove_resource(
        self, request: Request, pk: int | None = None, course_pk: int | None = None, resource_id: int | None = None
    ) -> Response:
        module = self.get_object()
        resource = get_object_or_404(module.resources, pk=resource_id)
        content_service.delete_resource(request.user, resource)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="reorder-pages")
    def reorder_pages(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        ser = ReorderSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        content_service.reorder_pages(request.user, self.get_object(), ser.validated_data["ids"])
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Pages ----------
@extend_schema_view(
    list=extend_schema(tags=["Pages"], responses={200: PageReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Pages"], responses={200: PageReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Pages"], request=PageWriteSerializer,
        responses={201: PageReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("course-member", ownership="owner-on-create"),
    ),
    update=extend_schema(
        tags=["Pages"], request=PageWriteSerializer,
        responses={200: PageReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("edit-permission"),
    ),
    partial_update=extend_schema(
        tags=["Pages"], request=PageWriteSerializer,
        responses={200: PageReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=x_permissions("edit-permission"),
    ),
    destroy=extend_schema(
        tags=["Pages"], responses={**DELETED_RESPONSE, **AUTH_RESPONSES}, extensions=x_permissions("delete-permission"),
    ),
    by_slug=extend_schema(
        tags=["Pages"],
        parameters=[OpenApiParameter("slug", str, OpenApiParameter.PATH)],
        responses={200: PageReadSerializer, **AUTH_RESPONSES},
    ),
    set_status=extend_schema(
        tags=["Pages"], request=StatusSerializer,
        responses={200: PageReadSerializer, **AUTH_RESPONSES}, extensions=x_permissions("manage-permission"),
    ),
)
@extend_schema(parameters=COURSE_PATH)
class PageViewSet(CourseScopedMixin, PaginationMixin, viewsets.ModelViewSet):
    """Course pages guarded by the ACL: VIEW to read, EDIT to change, DELETE to remove, MANAGE to publish."""
    queryset = Page.objects.select_related("course", "created_by")
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        return PageWriteSerializer if self.action in ("create", "update", "partial_update") else PageReadSerializer

    def get_queryset(self):
        qs = Page.objects.filter(course=self.get_course()).select_related("course", "created_by")
        if self.action == "list":
            module_id = self.request.query_params.get("module")
            if module_id:
                qs = qs.filter(module_id=module_id)
            return content_service.visible_pages(self.request.user, qs).order_by("module_id", "order", "id")
        return qs

    def _check_view(self, page: Page) -> Page:
        if not content_service.can_view_page(self.request.user, page):
            self.permission_denied(self.request, message="You do not have view permission on this page.")
        return page

    def list(self, request: Request, *args, **kwargs) -> Response:
        if not can_view_course(request.user, self.get_course()):
            raise NotFound()
        return self.paginate_and_respond(self.get_queryset(), PageReadSerializer)

    def retrieve(self, request: Request, *args, **kwargs) -> Response:
        return Response(PageReadSerializer(self._check_view(self.get_object())).data)

    @action(detail=False, methods=["get"], url_path=r"by-slug/(?P<slug>[-\w]+)")
    def by_slug(self, request: Request, course_pk: int | None = None, slug: str | None = None) -> Response:
        page = get_object_or_404(self.get_queryset(), slug=slug)
        return Response(PageReadSerializer(self._check_view(page)).data)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        page = content_service.create_page(request.user, self.get_course(), ser.validated_data)
        return Response(PageReadSerializer(page).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        page = self.get_object()
        ser = self.get_serializer(page, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        page = content_service.update_page(request.user, page, ser.validated_data)
        return Response(PageReadSerializer(page).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        content_service.delete_page(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request: Request, pk: int | None = None, course_pk: int | None = None) -> Response:
        ser = StatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        page = content_service.set_page_status(request.user, self.get_object(), ser.validated_data["status"])
        return Response(PageReadSerializer(page).data)
