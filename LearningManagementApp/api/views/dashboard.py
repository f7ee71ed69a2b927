"""Role-specific dashboard."""

from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import extend_schema, PolymorphicProxySerializer

from LearningManagementApp.api.serializers.dashboard import InstructorDashboardSerializer, StudentDashboardSerializer
from LearningManagementApp.api.views.common import AUTH_RESPONSES
from LearningManagementApp.domain.services import dashboard_service


@extend_schema(
    tags=["Dashboard"],
    description="Students get courses, deadlines, announcements and assignments; staff get taught courses and grading backlog.",
    responses={
        200: PolymorphicProxySerializer(
            component_name="Dashboard",
            serializers=[StudentDashboardSerializer, InstructorDashboardSerializer],
            resource_type_field_name=None,
        ),
        **AUTH_RESPONSES,
    },
)
class DashboardView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        data = dashboard_service.dashboard_for(request.user)
        if "pending_grading" in data:
            return Response(InstructorDashboardSerializer(data).data)
        return Response(StudentDashboardSerializer(data).data)
