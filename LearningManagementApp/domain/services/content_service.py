"""Domain service functions for course modules, module resources and pages."""

import logging
from typing import Any

from django.db import transaction
from django.db.models import Max, Q, QuerySet
from django.utils.text import slugify
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.content.models import CourseModule, ModuleResource, Page
from LearningManagementApp.core import access
from LearningManagementApp.core.choices import PermissionType, PublicationStatus, ResourceType
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.domain.services import acl_service

logger = logging.getLogger(__name__)


def _ensure_course_manager(user: User, course: Course) -> None:
    if not access.can_manage_course(user, course):
        raise PermissionDenied("Instructor role required")


def _next_order(queryset: QuerySet) -> int:
    current = queryset.aggregate(top=Max("order"))["top"]
    return 0 if current is None else current + 1


def _reorder(queryset: QuerySet, ordered_ids: list[int]) -> None:
    """Assign order = list index; every id must belong to ``queryset``."""
    objects = {obj.pk: obj for obj in queryset.filter(pk__in=ordered_ids)}
    if len(objects) != len(set(ordered_ids)):
        raise ValidationError({"ids": ["All ids must belong to the same parent."]})
    for index, pk in enumerate(ordered_ids):
        obj = objects[pk]
        if obj.order != index:
            obj.order = index
            obj.save(update_fields=["order"])


# ---------- Modules ----------
@transaction.atomic
def create_module(actor: User, course: Course, data: dict[str, Any]) -> CourseModule:
    _ensure_course_manager(actor, course)
    module = CourseModule.objects.create(
        course=course,
        created_by=actor,
        order=_next_order(course.modules.all()),
        **data,
    )
    acl_service.setup_default_permissions(module, publish=module.status == PublicationStatus.PUBLISHED)
    return module


@transaction.atomic
def update_module(actor: User, module: CourseModule, data: dict[str, Any]) -> CourseModule:
    _ensure_course_manager(actor, module.course)
    data = dict(data)
    status = data.pop("status", None)
    for field, value in data.items():
        setattr(module, field, value)
    module.save()
    if status is not None and status != module.status:
        set_module_status(actor, module, status)
    return module


@transaction.atomic
def delete_module(actor: User, module: CourseModule) -> None:
    _ensure_course_manager(actor, module.course)
    module.delete()


@transaction.atomic
def set_module_status(actor: User, module: CourseModule, status: str) -> CourseModule:
    """Publish or archive a module; publishing opens it to the course's students."""
    _ensure_course_manager(actor, module.course)
    module.status = status
    module.save(update_fields=["status", "updated_at"])
    if status == PublicationStatus.PUBLISHED:
        acl_service.make_public(module)
    else:
        acl_service.make_private(module)
    return module


@transaction.atomic
def reorder_modules(actor: User, course: Course, module_ids: list[int]) -> None:
    _ensure_course_manager(actor, course)
    _reorder(course.modules.all(), module_ids)


def can_view_module(user: User, module: CourseModule) -> bool:
    """Public modules are open; drafts only reach course staff; otherwise ACL with course fallback."""
    if module.is_public and module.status == PublicationStatus.PUBLISHED:
        return True
    if access.is_admin(user) or access.is_course_staff(user, module.course):
        return True
    if module.status != PublicationStatus.PUBLISHED:
        return False
    return acl_service.can_access_based_on_course(user, module, PermissionType.VIEW)


def visible_modules(user: User, course: Course) -> QuerySet[CourseModule]:
    modules = course.modules.all()
    if access.is_admin(user) or access.is_course_staff(user, course):
        return modules
    return modules.filter(pk__in=[m.pk for m in modules if can_view_module(user, m)])


# ---------- Resources ----------
@transaction.atomic
def add_resource(actor: User, module: CourseModule, data: dict[str, Any]) -> ModuleResource:
    _ensure_course_manager(actor, module.course)
    if data.get("resource_type") == ResourceType.FILE and not data.get("file"):
        raise ValidationError({"file": ["A file is required for file resources."]})
    if data.get("resource_type") == ResourceType.LINK and not data.get("url"):
        raise ValidationError({"url": ["A URL is required for link resources."]})
    return ModuleResource.objects.create(module=module, **data)


@transaction.atomic
def delete_resource(actor: User, resource: ModuleResource) -> None:
    _ensure_course_manager(actor, resource.module.course)
    resource.delete()


# ---------- Pages ----------
def unique_slug(title: str, exclude_pk: int | None = None) -> str:
    """Slugified title with a numeric suffix when taken ("intro", "intro-1", "intro-2", ...)."""
    base = slugify(title)[:250] or "page"
    taken = Page.objects.filter(Q(slug=base) | Q(slug__startswith=f"{base}-"))
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)
    taken_slugs = set(taken.values_list("slug", flat=True))
    slug, counter = base, 1
    while slug in taken_slugs:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def check_module(course: Course, module: CourseModule | None) -> None:
    if module is not None and module.course_id != course.pk:
        raise ValidationError({"module": ["The selected module does not belong to this course."]})


@transaction.atomic
def create_page(actor: User, course: Course, data: dict[str, Any]) -> Page:
    """Any course member (or an administrator) may author pages; the author gets MANAGE."""
    if not (access.is_admin(actor) or access.is_member(actor, course)):
        raise PermissionDenied("You must be a member of this course to create pages.")
    data = dict(data)
    module = data.get("module")
    check_module(course, module)
    slug = data.pop("slug", None) or unique_slug(data["title"])
    if Page.objects.filter(slug=slug).exists():
        raise ValidationError({"slug": ["This slug is already in use."]})
    siblings = Page.objects.filter(course=course, module=module)
    page = Page.objects.create(
        course=course, created_by=actor, slug=slug, order=_next_order(siblings), **data
    )
    acl_service.setup_default_permissions(page, publish=page.status == PublicationStatus.PUBLISHED)
    logger.info("Page %s created in course %s by %s", page.slug, course.pk, actor.pk)
    return page


@transaction.atomic
def update_page(actor: User, page: Page, data: dict[str, Any]) -> Page:
    acl_service.require_permission(actor, page, PermissionType.EDIT)
    data = dict(data)
    if "module" in data:
        check_module(page.course, data["module"])
    slug = data.pop("slug", None)
    if slug and slug != page.slug:
        if Page.objects.filter(slug=slug).exclude(pk=page.pk).exists():
            raise ValidationError({"slug": ["This slug is already in use."]})
        page.slug = slug
    status = data.pop("status", None)
    for field, value in data.items():
        setattr(page, field, value)
    page.save()
    if status is not None and status != page.status:
        set_page_status(actor, page, status)
    return page


@transaction.atomic
def delete_page(actor: User, page: Page) -> None:
    acl_service.require_permission(actor, page, PermissionType.DELETE)
    page.delete()


@transaction.atomic
def set_page_status(actor: User, page: Page, status: str) -> Page:
    acl_service.require_permission(actor, page, PermissionType.MANAGE)
    page.status = status
    page.save(update_fields=["status", "updated_at"])
    if status == PublicationStatus.PUBLISHED:
        acl_service.make_public(page)
    else:
        acl_service.make_private(page)
    return page


@transaction.atomic
def reorder_pages(actor: User, module: CourseModule, page_ids: list[int]) -> None:
    if not (acl_service.has_permission(actor, module, PermissionType.MANAGE)
            or access.can_manage_course(actor, module.course)):
        raise PermissionDenied("You do not have manage permission on this module.")
    _reorder(module.pages.all(), page_ids)


def can_view_page(user: User, page: Page) -> bool:
    if page.is_public and page.status == PublicationStatus.PUBLISHED:
        return True
    if user and user.is_authenticated and page.created_by_id == user.pk:
        return True
    return acl_service.has_permission(user, page, PermissionType.VIEW)


def visible_pages(user: User, queryset: QuerySet[Page] | None = None) -> QuerySet[Page]:
    """Public pages, pages the user wrote and pages the user may view through the ACL."""
    queryset = Page.objects.all() if queryset is None else queryset
    public = Q(is_public=True, status=PublicationStatus.PUBLISHED)
    if not user or not user.is_authenticated:
        return queryset.filter(public)
    if user.is_admin:
        return queryset
    granted = acl_service.accessible_queryset(queryset, user, PermissionType.VIEW).values("pk")
    return queryset.filter(public | Q(created_by=user) | Q(pk__in=granted))
