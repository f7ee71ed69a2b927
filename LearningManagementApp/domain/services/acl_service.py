"""Domain service functions for per-object access control.

Evaluation order for ``has_permission``:
    1. anonymous users hold nothing;
    2. administrators hold everything;
    3. a personal (USER) entry granting the permission, or MANAGE, wins;
    4. a role (ROLE) entry for the user's role counts only inside the content's
       course, i.e. for the course owner and its active members;
    5. otherwise access is denied.
Content with no ACL entries at all falls back to course roles in
``can_access_based_on_course``.
"""

import logging
from collections.abc import Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction
from django.db.models import Exists, OuterRef, Q, QuerySet
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningManagementApp.acl.models import AclEntry
from LearningManagementApp.communication.models import Announcement, Discussion
from LearningManagementApp.content.models import CourseModule, Page
from LearningManagementApp.core import access
from LearningManagementApp.core.choices import (
    EnrollmentStatus, GranteeType, PermissionType, UserRole,
)
from LearningManagementApp.courses.models import CourseMembership
from LearningManagementApp.learning.models import Assignment
from LearningManagementApp.quizzes.models import Quiz

logger = logging.getLogger(__name__)

CONTENT_MODELS: dict[str, type[models.Model]] = {
    "page": Page,
    "assignment": Assignment,
    "quiz": Quiz,
    "discussion": Discussion,
    "announcement": Announcement,
    "module": CourseModule,
}


def get_model_class(content_type: str) -> type[models.Model]:
    """Map an API content type name to its model; 400 when unknown."""
    model = CONTENT_MODELS.get(content_type)
    if model is None:
        raise ValidationError({"content_type": [f"Unknown content type: {content_type}."]})
    return model


def resolve_content(content_type: str, object_id) -> models.Model:
    model = get_model_class(content_type)
    try:
        return model.objects.get(pk=object_id)
    except (model.DoesNotExist, ValueError):
        raise NotFound("Content not found.")


def _grantee(role: str | None, user) -> dict:
    if (role is None) == (user is None):
        raise ValueError("Exactly one of role or user must be given")
    if role is not None:
        return {"grantee_type": GranteeType.ROLE, "grantee_role": role, "grantee_user": None}
    return {"grantee_type": GranteeType.USER, "grantee_role": "", "grantee_user": user}


def _role_grant_applies(user, content) -> bool:
    course = access.course_from(content)
    return course is None or access.is_member(user, course)


def has_permission(user, content, permission: str) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_admin:
        return True
    entries = AclEntry.objects.for_content(content).granting(permission)
    if entries.user_grants(user).exists():
        return True
    if not entries.role_grants(user.role).exists():
        return False
    return _role_grant_applies(user, content)


def require_permission(user, content, permission: str) -> None:
    """Raise PermissionDenied unless ``has_permission`` holds."""
    if not has_permission(user, content, permission):
        raise PermissionDenied(f"You do not have {permission.lower()} permission on this content.")


def get_user_permissions(user, content) -> list[str]:
    """Permission names the user holds on the content, MANAGE expanded to all kinds."""
    if not user or not user.is_authenticated:
        return []
    if user.is_admin:
        return list(PermissionType.values)
    held: set[str] = set()
    role_applies = None
    for entry in AclEntry.objects.for_content(content).for_user(user):
        if entry.grantee_type == GranteeType.ROLE:
            if role_applies is None:
                role_applies = _role_grant_applies(user, content)
            if not role_applies:
                continue
        held.add(entry.permission_type)
    if PermissionType.MANAGE in held:
        return list(PermissionType.values)
    return [perm for perm in PermissionType.values if perm in held]


def grant_permission(content, permission_type: str, *, role: str | None = None, user=None) -> AclEntry:
    """Grant a permission (idempotent)."""
    ct = ContentType.objects.get_for_model(content)
    entry, created = AclEntry.objects.get_or_create(
        content_type=ct, object_id=content.pk, permission_type=permission_type, **_grantee(role, user)
    )
    if created:
        logger.info("ACL grant %s on %s#%s to %s", permission_type, ct.model, content.pk, role or f"user#{user.pk}")
    return entry


def revoke_permission(content, permission_type: str, *, role: str | None = None, user=None) -> int:
    grantee = _grantee(role, user)
    deleted, _ = AclEntry.objects.for_content(content).filter(
        permission_type=permission_type,
        grantee_type=grantee["grantee_type"],
        grantee_role=grantee["grantee_role"],
        grantee_user=grantee["grantee_user"],
    ).delete()
    if deleted:
        logger.info("ACL revoke %s on %s#%s from %s", permission_type, type(content).__name__, content.pk, role or f"user#{user.pk}")
    return deleted


@transaction.atomic
def setup_default_permissions(content, *, publish: bool = True) -> None:
    """MANAGE for the creator and the course instructor; VIEW for students unless unpublished."""
    owner = content.acl_owner
    if owner is not None:
        grant_permission(content, PermissionType.MANAGE, user=owner)
    course = access.course_from(content)
    if course is not None and course.instructor_id != getattr(owner, "pk", None):
        grant_permission(content, PermissionType.MANAGE, user=course.instructor)
    if publish and (course is not None or content.acl_is_public):
        make_public(content)


def make_public(content) -> AclEntry:
    return grant_permission(content, PermissionType.VIEW, role=UserRole.STUDENT)


def make_private(content) -> int:
    """Drop role-wide VIEW entries; personal grants and MANAGE entries stay."""
    deleted, _ = AclEntry.objects.for_content(content).filter(
        grantee_type=GranteeType.ROLE, permission_type=PermissionType.VIEW
    ).delete()
    return deleted


def accessible_queryset(queryset: QuerySet, user, permission: str = PermissionType.VIEW) -> QuerySet:
    """Restrict a queryset of ACL protected content to rows the user holds `permission` on."""
    if not user or not user.is_authenticated:
        return queryset.none()
    if user.is_admin:
        return queryset
    ct = ContentType.objects.get_for_model(queryset.model)
    grants = AclEntry.objects.filter(content_type=ct, object_id=OuterRef("pk")).granting(permission)
    memberships = CourseMembership.objects.filter(
        course=OuterRef("course"), user=user, status=EnrollmentStatus.ACTIVE
    )
    return queryset.annotate(
        _acl_user=Exists(grants.user_grants(user)),
        _acl_role=Exists(grants.role_grants(user.role)),
        _acl_member=Exists(memberships),
    ).filter(
        Q(_acl_user=True) |
        Q(_acl_role=True, _acl_member=True) |
        Q(_acl_role=True, course__instructor=user)
    )


def get_accessible_content(user, content_type: str, permission: str = PermissionType.VIEW) -> QuerySet:
    model = get_model_class(content_type)
    return accessible_queryset(model.objects.all(), user, permission)


def get_user_created_content(user, content_type: str) -> QuerySet:
    """Content on which the user holds a personal MANAGE entry."""
    model = get_model_class(content_type)
    ct = ContentType.objects.get_for_model(model)
    ids = AclEntry.objects.filter(content_type=ct, permission_type=PermissionType.MANAGE).user_grants(user)
    return model.objects.filter(pk__in=ids.values("object_id"))


@transaction.atomic
def bulk_grant_permissions(
    content_type: str, object_ids: Iterable[int], permission_type: str, *, role: str | None = None, user=None
) -> int:
    model = get_model_class(content_type)
    granted = 0
    for content in model.objects.filter(pk__in=list(object_ids)):
        grant_permission(content, permission_type, role=role, user=user)
        granted += 1
    return granted


@transaction.atomic
def bulk_revoke_permissions(
    content_type: str, object_ids: Iterable[int], permission_type: str, *, role: str | None = None, user=None
) -> int:
    model = get_model_class(content_type)
    grantee = _grantee(role, user)
    deleted, _ = AclEntry.objects.filter(
        content_type=ContentType.objects.get_for_model(model),
        object_id__in=list(object_ids),
        permission_type=permission_type,
        grantee_type=grantee["grantee_type"],
        grantee_role=grantee["grantee_role"],
        grantee_user=grantee["grantee_user"],
    ).delete()
    return deleted


def can_access_based_on_course(user, content, permission: str = PermissionType.VIEW) -> bool:
    """Explicit entries win; otherwise instructors and TAs get full access and students read access."""
    if not user or not user.is_authenticated:
        return False
    if content.acl_entries.exists():
        return has_permission(user, content, permission)
    if user.is_admin:
        return True
    course = access.course_from(content)
    if course is None:
        return False
    if access.is_instructor(user, course) or access.is_teaching_assistant(user, course):
        return True
    return permission == PermissionType.VIEW and access.is_student(user, course)


def can_view(user, content) -> bool:
    """Public content is readable by anyone; otherwise ACL with course fallback."""
    if content.acl_is_public:
        return True
    return can_access_based_on_course(user, content, PermissionType.VIEW)
