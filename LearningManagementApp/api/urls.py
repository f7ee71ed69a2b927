from django.urls import path, include
from rest_framework_nested import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from LearningManagementApp.api.views import (
    AclBulkGrantView,
    AclBulkRevokeView,
    AclDetailView,
    AclGrantView,
    AclRevokeView,
    AdminUserViewSet,
    AnnouncementViewSet,
    AssignmentViewSet,
    AttemptViewSet,
    CourseSubmissionViewSet,
    CourseViewSet,
    DashboardView,
    DiscussionViewSet,
    GradebookViewSet,
    GradeCategoryViewSet,
    MeView,
    ModuleViewSet,
    PageViewSet,
    QuestionViewSet,
    QuizViewSet,
    RegistrationView,
    SubmissionViewSet,
)

router = routers.SimpleRouter()
router.register(r"courses", CourseViewSet, basename="course")
router.register(r"admin/users", AdminUserViewSet, basename="admin-user")

courses_router = routers.NestedSimpleRouter(router, r"courses", lookup="course")
courses_router.register(r"modules", ModuleViewSet, basename="course-modules")
courses_router.register(r"pages", PageViewSet, basename="course-pages")
courses_router.register(r"assignments", AssignmentViewSet, basename="course-assignments")
courses_router.register(r"submissions", CourseSubmissionViewSet, basename="course-submissions")
courses_router.register(r"gradebook", GradebookViewSet, basename="course-gradebook")
courses_router.register(r"grade-categories", GradeCategoryViewSet, basename="course-grade-categories")
courses_router.register(r"quizzes", QuizViewSet, basename="course-quizzes")
courses_router.register(r"announcements", AnnouncementViewSet, basename="course-announcements")
courses_router.register(r"discussions", DiscussionViewSet, basename="course-discussions")

assignments_router = routers.NestedSimpleRouter(courses_router, r"assignments", lookup="assignment")
assignments_router.register(r"submissions", SubmissionViewSet, basename="assignment-submissions")

quizzes_router = routers.NestedSimpleRouter(courses_router, r"quizzes", lookup="quiz")
quizzes_router.register(r"questions", QuestionViewSet, basename="quiz-questions")
quizzes_router.register(r"attempts", AttemptViewSet, basename="quiz-attempts")

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/register/", RegistrationView.as_view(), name="auth-register"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/me/", MeView.as_view(), name="auth-me"),
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("acl/<str:content_type>/bulk-grant/", AclBulkGrantView.as_view(), name="acl-bulk-grant"),
    path("acl/<str:content_type>/bulk-revoke/", AclBulkRevokeView.as_view(), name="acl-bulk-revoke"),
    path("acl/<str:content_type>/<int:object_id>/", AclDetailView.as_view(), name="acl-detail"),
    path("acl/<str:content_type>/<int:object_id>/grant/", AclGrantView.as_view(), name="acl-grant"),
    path("acl/<str:content_type>/<int:object_id>/revoke/", AclRevokeView.as_view(), name="acl-revoke"),
    path("", include(router.urls)),
    path("", include(courses_router.urls)),
    path("", include(assignments_router.urls)),
    path("", include(quizzes_router.urls)),
]
