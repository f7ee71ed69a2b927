from .acl import AclBulkGrantView, AclBulkRevokeView, AclDetailView, AclGrantView, AclRevokeView
from .auth import AdminUserViewSet, MeView, RegistrationView
from .communication import AnnouncementViewSet, DiscussionViewSet
from .content import ModuleViewSet, PageViewSet
from .courses import CourseViewSet
from .dashboard import DashboardView
from .learning import (
    AssignmentViewSet, CourseSubmissionViewSet, GradebookViewSet, GradeCategoryViewSet, SubmissionViewSet,
)
from .quizzes import AttemptViewSet, QuestionViewSet, QuizViewSet
