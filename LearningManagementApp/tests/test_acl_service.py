import pytest
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from LearningManagementApp.acl.models import AclEntry
from LearningManagementApp.core.choices import PermissionType, UserRole
from LearningManagementApp.domain.services import acl_service, content_service

pytestmark = pytest.mark.django_db


@pytest.fixture
def page(course, instructor):
    return content_service.create_page(instructor, course, {
        "title": "Syllabus", "content": "<p>Week 1</p>", "status": "PUBLISHED",
    })


@pytest.fixture
def draft(course, instructor):
    return content_service.create_page(instructor, course, {"title": "Draft notes", "content": "tbd"})


def test_defaults_give_creator_manage_and_students_view(page, instructor, student):
    assert acl_service.has_permission(instructor, page, PermissionType.MANAGE)
    assert acl_service.has_permission(student, page, PermissionType.VIEW)
    assert not acl_service.has_permission(student, page, PermissionType.EDIT)


def test_draft_has_no_role_view(draft, student, instructor):
    assert not acl_service.has_permission(student, draft, PermissionType.VIEW)
    assert acl_service.has_permission(instructor, draft, PermissionType.VIEW)


def test_manage_implies_every_permission(page, instructor):
    for permission in PermissionType.values:
        assert acl_service.has_permission(instructor, page, permission)
    assert acl_service.get_user_permissions(instructor, page) == list(PermissionType.values)


def test_admin_holds_everything_without_entries(draft, admin):
    assert acl_service.has_permission(admin, draft, PermissionType.DELETE)
    assert acl_service.get_user_permissions(admin, draft) == list(PermissionType.values)


def test_role_grant_does_not_reach_outside_the_course(page, outsider):
    assert outsider.role == UserRole.STUDENT
    assert not acl_service.has_permission(outsider, page, PermissionType.VIEW)
    assert acl_service.get_user_permissions(outsider, page) == []


def test_user_grant_reaches_outside_the_course(draft, outsider):
    acl_service.grant_permission(draft, PermissionType.EDIT, user=outsider)
    assert acl_service.has_permission(outsider, draft, PermissionType.EDIT)
    assert acl_service.get_user_permissions(outsider, draft) == [PermissionType.EDIT]


def test_grant_is_idempotent(draft, student):
    first = acl_service.grant_permission(draft, PermissionType.VIEW, user=student)
    second = acl_service.grant_permission(draft, PermissionType.VIEW, user=student)
    assert first.pk == second.pk
    assert AclEntry.objects.for_content(draft).filter(grantee_user=student).count() == 1


def test_grantee_must_be_exactly_one_of_role_or_user(draft, student):
    with pytest.raises(ValueError):
        acl_service.grant_permission(draft, PermissionType.VIEW)
    with pytest.raises(ValueError):
        acl_service.grant_permission(draft, PermissionType.VIEW, role=UserRole.STUDENT, user=student)


def test_revoke_returns_removed_count(page, student):
    assert acl_service.revoke_permission(page, PermissionType.VIEW, role=UserRole.STUDENT) == 1
    assert acl_service.revoke_permission(page, PermissionType.VIEW, role=UserRole.STUDENT) == 0
    assert not acl_service.has_permission(student, page, PermissionType.VIEW)


def test_make_private_keeps_personal_and_manage_entries(page, instructor, outsider):
    acl_service.grant_permission(page, PermissionType.VIEW, user=outsider)
    acl_service.make_private(page)
    assert acl_service.has_permission(outsider, page, PermissionType.VIEW)
    assert acl_service.has_permission(instructor, page, PermissionType.MANAGE)
    assert not AclEntry.objects.for_content(page).filter(grantee_role=UserRole.STUDENT).exists()


def test_require_permission_raises(draft, student):
    with pytest.raises(PermissionDenied):
        acl_service.require_permission(student, draft, PermissionType.VIEW)


def test_accessible_queryset_matches_has_permission(course, instructor, student, outsider, page, draft):
    from LearningManagementApp.content.models import Page

    acl_service.grant_permission(draft, PermissionType.VIEW, user=outsider)
    for user in (instructor, student, outsider):
        visible = set(acl_service.accessible_queryset(Page.objects.all(), user).values_list("pk", flat=True))
        expected = {p.pk for p in (page, draft) if acl_service.has_permission(user, p, PermissionType.VIEW)}
        assert visible == expected


def test_get_accessible_content(page, draft, instructor, student, outsider, admin):
    from django.contrib.auth.models import AnonymousUser

    assert set(acl_service.get_accessible_content(instructor, "page")) == {page, draft}
    assert set(acl_service.get_accessible_content(student, "page")) == {page}
    assert not acl_service.get_accessible_content(student, "page", PermissionType.EDIT).exists()
    assert set(acl_service.get_accessible_content(admin, "page", PermissionType.DELETE)) == {page, draft}
    assert not acl_service.get_accessible_content(AnonymousUser(), "page").exists()

    acl_service.grant_permission(draft, PermissionType.EDIT, user=outsider)
    assert set(acl_service.get_accessible_content(outsider, "page", PermissionType.EDIT)) == {draft}
    assert not acl_service.get_accessible_content(outsider, "page").exists()

    with pytest.raises(ValidationError):
        acl_service.get_accessible_content(student, "gizmo")


def test_get_user_created_content(page, draft, instructor, student):
    assert set(acl_service.get_user_created_content(instructor, "page")) == {page, draft}
    assert not acl_service.get_user_created_content(student, "page").exists()


def test_bulk_grant_and_revoke_skip_missing_ids(page, draft, outsider):
    granted = acl_service.bulk_grant_permissions("page", [page.pk, draft.pk, 999999], PermissionType.VIEW, user=outsider)
    assert granted == 2
    assert acl_service.has_permission(outsider, draft, PermissionType.VIEW)
    revoked = acl_service.bulk_revoke_permissions("page", [page.pk, draft.pk], PermissionType.VIEW, user=outsider)
    assert revoked == 2


def test_unknown_content_type_and_missing_object(page):
    with pytest.raises(ValidationError):
        acl_service.get_model_class("video")
    with pytest.raises(NotFound):
        acl_service.resolve_content("page", 999999)
    assert acl_service.resolve_content("page", page.pk) == page


def test_course_fallback_without_entries(page, assistant, student, outsider):
    AclEntry.objects.for_content(page).delete()
    assert acl_service.can_access_based_on_course(assistant, page, PermissionType.EDIT)
    assert acl_service.can_access_based_on_course(student, page, PermissionType.VIEW)
    assert not acl_service.can_access_based_on_course(student, page, PermissionType.EDIT)
    assert not acl_service.can_access_based_on_course(outsider, page, PermissionType.VIEW)


def test_explicit_entries_override_course_fallback(page, assistant):
    assert not acl_service.can_access_based_on_course(assistant, page, PermissionType.EDIT)


def test_entries_are_removed_with_content(page):
    pk = page.pk
    page.delete()
    assert not AclEntry.objects.filter(content_type__model="page", object_id=pk).exists()
