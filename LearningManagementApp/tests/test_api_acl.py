import pytest

from LearningManagementApp.core.choices import PermissionType
from LearningManagementApp.domain.services import acl_service, content_service
from LearningManagementApp.tests.conftest import login

pytestmark = pytest.mark.django_db


@pytest.fixture
def page(course, instructor):
    return content_service.create_page(instructor, course, {"title": "Syllabus", "content": ".", "status": "PUBLISHED"})


@pytest.fixture
def draft(course, instructor):
    return content_service.create_page(instructor, course, {"title": "Draft", "content": "."})


def acl_url(obj, suffix=""):
    return f"/api/v1/acl/page/{obj.pk}/{suffix}"


def test_managers_see_the_entry_list(page, instructor, student):
    managed = login(instructor).get(acl_url(page))
    assert managed.status_code == 200
    assert managed.data["permissions"] == list(PermissionType.values)
    assert {(e["grantee_type"], e["permission_type"]) for e in managed.data["entries"]} == {
        ("USER", "MANAGE"), ("ROLE", "VIEW"),
    }

    viewer = login(student).get(acl_url(page))
    assert viewer.status_code == 200
    assert viewer.data["permissions"] == ["VIEW"]
    assert viewer.data["entries"] == []


def test_detail_errors(draft, student):
    client = login(student)
    assert client.get(acl_url(draft)).status_code == 403
    assert client.get("/api/v1/acl/page/999999/").status_code == 404
    assert client.get("/api/v1/acl/gizmo/1/").status_code == 400


def test_grant_and_revoke_for_a_user(draft, instructor, student):
    client = login(instructor)
    payload = {"permission_type": "VIEW", "grantee_type": "USER", "grantee_user": student.pk}
    granted = client.post(acl_url(draft, "grant/"), payload, format="json")
    assert granted.status_code == 201
    assert granted.data["grantee_user"] == student.pk
    assert client.post(acl_url(draft, "grant/"), payload, format="json").data["id"] == granted.data["id"]
    assert content_service.can_view_page(student, draft)

    revoked = client.post(acl_url(draft, "revoke/"), payload, format="json")
    assert revoked.data == {"revoked": 1}
    assert not content_service.can_view_page(student, draft)


def test_grant_requires_manage(page, assistant, student):
    payload = {"permission_type": "EDIT", "grantee_type": "USER", "grantee_user": student.pk}
    for user in (assistant, student):
        assert login(user).post(acl_url(page, "grant/"), payload, format="json").status_code == 403


@pytest.mark.parametrize("payload, field", [
    ({"permission_type": "VIEW", "grantee_type": "ROLE"}, "grantee_role"),
    ({"permission_type": "VIEW", "grantee_type": "USER"}, "grantee_user"),
    ({"permission_type": "OWN", "grantee_type": "ROLE", "grantee_role": "STUDENT"}, "permission_type"),
])
def test_grant_payload_validation(draft, instructor, payload, field):
    resp = login(instructor).post(acl_url(draft, "grant/"), payload, format="json")
    assert resp.status_code == 400
    assert field in resp.data


def test_role_grant_reaches_course_members_only(draft, instructor, student, outsider):
    resp = login(instructor).post(
        acl_url(draft, "grant/"),
        {"permission_type": "VIEW", "grantee_type": "ROLE", "grantee_role": "STUDENT"},
        format="json",
    )
    assert resp.status_code == 201
    assert content_service.can_view_page(student, draft)
    assert not content_service.can_view_page(outsider, draft)


def test_bulk_grant_and_revoke(course, instructor, student):
    pages = [
        content_service.create_page(instructor, course, {"title": f"Draft {i}", "content": "."}) for i in range(2)
    ]
    ids = [p.pk for p in pages]
    client = login(instructor)
    payload = {"object_ids": ids + [999999], "permission_type": "VIEW", "grantee_type": "ROLE", "grantee_role": "STUDENT"}

    granted = client.post("/api/v1/acl/page/bulk-grant/", payload, format="json")
    assert granted.data == {"granted": 2}
    assert all(acl_service.has_permission(student, p, PermissionType.VIEW) for p in pages)

    revoked = client.post("/api/v1/acl/page/bulk-revoke/", payload, format="json")
    assert revoked.data == {"revoked": 2}
    assert not any(acl_service.has_permission(student, p, PermissionType.VIEW) for p in pages)


def test_bulk_grant_needs_manage_on_every_object(course, instructor, student, page):
    own = content_service.create_page(student, course, {"title": "Notes", "content": "."})
    resp = login(student).post("/api/v1/acl/page/bulk-grant/", {
        "object_ids": [own.pk, page.pk], "permission_type": "EDIT", "grantee_type": "USER", "grantee_user": student.pk,
    }, format="json")
    assert resp.status_code == 403
    assert not acl_service.has_permission(student, page, PermissionType.EDIT)
