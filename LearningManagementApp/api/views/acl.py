"""Per-object access control entries: inspect, grant, revoke (single and bulk)."""

from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse

from LearningManagementApp.acl.models import AclEntry
from LearningManagementApp.api.serializers.acl import AclEntrySerializer, BulkGrantSerializer, GrantSerializer
from LearningManagementApp.api.views.common import AUTH_RESPONSES, BAD_REQUEST_RESPONSE, x_permissions
from LearningManagementApp.core.choices import PermissionType
from LearningManagementApp.domain.services import acl_service

CONTENT_PATH = [
    OpenApiParameter(
        "content_type", str, OpenApiParameter.PATH, enum=sorted(acl_service.CONTENT_MODELS),
    ),
]
OBJECT_PATH = CONTENT_PATH + [OpenApiParameter("object_id", int, OpenApiParameter.PATH)]
MANAGERS = x_permissions("manage-permission")


@extend_schema(
    tags=["ACL"],
    parameters=OBJECT_PATH,
    description="Caller's permissions on the object; the entry list is included for MANAGE holders.",
    responses={200: OpenApiResponse(description="entries + permissions"), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
)
class AclDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request, content_type: str, object_id: int) -> Response:
        content = acl_service.resolve_content(content_type, object_id)
        permissions = acl_service.get_user_permissions(request.user, content)
        if not permissions and not acl_service.can_view(request.user, content):
            raise PermissionDenied("You do not have view permission on this content.")
        entries = []
        if PermissionType.MANAGE in permissions:
            entries = AclEntrySerializer(
                AclEntry.objects.for_content(content).select_related("grantee_user"), many=True
            ).data
        return Response({
            "content_type": content_type,
            "object_id": content.pk,
            "entries": entries,
            "permissions": permissions,
        })


class _GrantBase(APIView):
    permission_classes = [IsAuthenticated]

    def _validated(self, request: Request, content_type: str, object_id: int):
        content = acl_service.resolve_content(content_type, object_id)
        acl_service.require_permission(request.user, content, PermissionType.MANAGE)
        ser = GrantSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return content, ser


@extend_schema(
    tags=["ACL"], parameters=OBJECT_PATH, request=GrantSerializer,
    responses={201: AclEntrySerializer, **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES}, extensions=MANAGERS,
)
class AclGrantView(_GrantBase):
    """Grant a permission to a role or a user (idempotent)."""

    def post(self, request: Request, content_type: str, object_id: int) -> Response:
        content, ser = self._validated(request, content_type, object_id)
        entry = acl_service.grant_permission(content, ser.validated_data["permission_type"], **ser.grantee_kwargs())
        return Response(AclEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


@extend_schema(
    tags=["ACL"], parameters=OBJECT_PATH, request=GrantSerializer,
    responses={200: OpenApiResponse(description="Number of removed entries."), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
    extensions=MANAGERS,
)
class AclRevokeView(_GrantBase):
    def post(self, request: Request, content_type: str, object_id: int) -> Response:
        content, ser = self._validated(request, content_type, object_id)
        revoked = acl_service.revoke_permission(content, ser.validated_data["permission_type"], **ser.grantee_kwargs())
        return Response({"revoked": revoked})


class _BulkBase(APIView):
    """Bulk changes need MANAGE on every listed object that exists."""
    permission_classes = [IsAuthenticated]

    def _validated(self, request: Request, content_type: str) -> BulkGrantSerializer:
        model = acl_service.get_model_class(content_type)
        ser = BulkGrantSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        for content in model.objects.filter(pk__in=ser.validated_data["object_ids"]):
            if not acl_service.has_permission(request.user, content, PermissionType.MANAGE):
                raise PermissionDenied(f"You do not have manage permission on {content_type} {content.pk}.")
        return ser


@extend_schema(
    tags=["ACL"], parameters=CONTENT_PATH, request=BulkGrantSerializer,
    responses={200: OpenApiResponse(description="Number of objects granted."), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
    extensions=MANAGERS,
)
class AclBulkGrantView(_BulkBase):
    def post(self, request: Request, content_type: str) -> Response:
        ser = self._validated(request, content_type)
        granted = acl_service.bulk_grant_permissions(
            content_type, ser.validated_data["object_ids"], ser.validated_data["permission_type"], **ser.grantee_kwargs()
        )
        return Response({"granted": granted})


@extend_schema(
    tags=["ACL"], parameters=CONTENT_PATH, request=BulkGrantSerializer,
    responses={200: OpenApiResponse(description="Number of removed entries."), **BAD_REQUEST_RESPONSE, **AUTH_RESPONSES},
    extensions=MANAGERS,
)
class AclBulkRevokeView(_BulkBase):
    def post(self, request: Request, content_type: str) -> Response:
        ser = self._validated(request, content_type)
        revoked = acl_service.bulk_revoke_permissions(
            content_type, ser.validated_data["object_ids"], ser.validated_data["permission_type"], **ser.grantee_kwargs()
        )
        return Response({"revoked": revoked})
