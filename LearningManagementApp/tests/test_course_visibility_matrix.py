import pytest
from django.utils import timezone
from model_bakery import baker
from rest_framework.test import APIClient

from LearningManagementApp.core.access import can_view_course
from LearningManagementApp.core.choices import MemberRole
from LearningManagementApp.courses.models import Course
from LearningManagementApp.tests.conftest import login, results

pytestmark = pytest.mark.django_db


def listed_ids(client):
    return [c["id"] for c in results(client.get("/api/v1/courses/"))]


@pytest.mark.parametrize("public,published,visible", [
    (True, True, True),
    (True, False, False),
    (False, True, False),
])
def test_course_visibility_matrix(public, published, visible, course_factory):
    course = course_factory(is_public=public, is_published=published)
    assert (course.id in listed_ids(APIClient())) is visible


@pytest.mark.parametrize("who, visible", [
    ("outsider", False),
    ("member", True),
    ("dropped", False),
    ("admin", True),
])
def test_private_course_visibility_by_relation(who, visible, course_factory, instructor, outsider, admin):
    course = course_factory(is_public=False, is_published=False)
    user = admin if who == "admin" else outsider
    if who in ("member", "dropped"):
        baker.make(
            "courses.CourseMembership", course=course, user=outsider, role=MemberRole.STUDENT, added_by=instructor,
            status="ACTIVE" if who == "member" else "DROPPED",
        )
    assert (course in Course.objects.visible_to(user)) is visible
    assert (course.id in listed_ids(login(user))) is visible


def test_instructor_sees_own_unpublished_course(course_factory, instructor):
    course = course_factory(is_public=False, is_published=False)
    assert course.id in listed_ids(login(instructor))
    assert can_view_course(instructor, course)


@pytest.fixture
def submission_late(course, instructor, student):
    from LearningManagementApp.domain.services import learning_service

    assignment = learning_service.create_assignment(instructor, course, {
        "title": "Late work",
        "due_date": timezone.now() - timezone.timedelta(days=1),
        "points": 10,
    })
    return learning_service.submit(student, assignment, content_text="answer")


def test_late_flag_persists(submission_late):
    submission_late.refresh_from_db()
    assert submission_late.is_late is True
