"""Registration, current-user and administrative user management endpoints."""

from django.contrib.auth import get_user_model
from django.db.models import Q

from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter

from LearningManagementApp.api.mixins import PaginationMixin
from LearningManagementApp.api.serializers.users import (
    AdminUserReadSerializer,
    AdminUserWriteSerializer,
    RegistrationSerializer,
    UserSerializer,
)
from LearningManagementApp.api.views.common import (
    AUTH_RESPONSES, BAD_REQUEST_RESPONSE, DELETED_RESPONSE, VALIDATION_RESPONSE, x_permissions,
)
from LearningManagementApp.core.permissions import IsAdminRole
from LearningManagementApp.domain.services import user_service

User = get_user_model()


# ---------- Auth ----------
@extend_schema(
    tags=["Auth"],
    request=RegistrationSerializer,
    responses={201: UserSerializer, **BAD_REQUEST_RESPONSE},
    description="Register a new user. Roles other than STUDENT require an administrator caller."
)
class RegistrationView(APIView):
    """User registration endpoint."""
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        """Create a user after validating role constraints."""
        ser = RegistrationSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)
        user = ser.save()
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@extend_schema(tags=["Auth"], responses={200: UserSerializer, **AUTH_RESPONSES})
class MeView(APIView):
    """The authenticated user."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)


# ---------- Admin: users ----------
ADMIN_ONLY = x_permissions("admin")


@extend_schema_view(
    list=extend_schema(
        tags=["Admin"],
        parameters=[
            OpenApiParameter("search", str, OpenApiParameter.QUERY, description="Match name or email."),
            OpenApiParameter("role", str, OpenApiParameter.QUERY),
        ],
        responses={200: AdminUserReadSerializer(many=True), **AUTH_RESPONSES},
        extensions=ADMIN_ONLY,
    ),
    retrieve=extend_schema(tags=["Admin"], responses={200: AdminUserReadSerializer, **AUTH_RESPONSES}, extensions=ADMIN_ONLY),
    create=extend_schema(
        tags=["Admin"],
        request=AdminUserWriteSerializer,
        responses={201: AdminUserReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=ADMIN_ONLY,
    ),
    update=extend_schema(
        tags=["Admin"],
        request=AdminUserWriteSerializer,
        responses={200: AdminUserReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=ADMIN_ONLY,
    ),
    partial_update=extend_schema(
        tags=["Admin"],
        request=AdminUserWriteSerializer,
        responses={200: AdminUserReadSerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
        extensions=ADMIN_ONLY,
    ),
    destroy=extend_schema(
        tags=["Admin"],
        responses={**DELETED_RESPONSE, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions=ADMIN_ONLY,
    ),
)
class AdminUserViewSet(PaginationMixin, viewsets.ModelViewSet):
    """User management for administrators."""
    queryset = User.objects.all().order_by("id")

    def get_permissions(self) -> list:
        return [IsAuthenticated(), IsAdminRole()]

    def get_serializer_class(self):
        return AdminUserWriteSerializer if self.action in ("create", "update", "partial_update") else AdminUserReadSerializer

    def get_queryset(self):
        qs = User.objects.all().order_by("id")
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search) | Q(last_name__icontains=search) | Q(email__icontains=search)
            )
        role = self.request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        return qs

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset(), AdminUserReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = user_service.create_user(request.user, ser.validated_data)
        return Response(AdminUserReadSerializer(user).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, *args, **kwargs) -> Response:
        user = self.get_object()
        ser = self.get_serializer(user, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        user = user_service.update_user(request.user, user, ser.validated_data)
        return Response(AdminUserReadSerializer(user).data)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        user_service.delete_user(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)
