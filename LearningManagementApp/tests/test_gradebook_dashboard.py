from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.domain.services import (
    attempt_service, communication_service, dashboard_service, gradebook_service, learning_service, quiz_service,
)
from LearningManagementApp.learning.models import Grade
from LearningManagementApp.tests.conftest import correct_answers, login, results

pytestmark = pytest.mark.django_db


@pytest.fixture
def graded_course(course, instructor, student, assignment, quiz_factory):
    """Student with 80/100 on the assignment and 6/6 on a quiz."""
    submission = learning_service.submit(student, assignment, content_text="work")
    learning_service.grade_submission(instructor, submission, Decimal("80"))
    quiz = quiz_factory()
    attempt, _ = attempt_service.start_attempt(student, quiz)
    attempt_service.submit_attempt(student, attempt, correct_answers(quiz))
    return course


def test_summary_totals(graded_course, instructor, student):
    row, = gradebook_service.course_gradebook(instructor, graded_course)
    assert row["student"] == student
    assert len(row["grades"]) == 2
    summary = row["summary"]
    assert summary["points_earned"] == Decimal("86")
    assert summary["points_possible"] == Decimal("106")
    assert summary["percentage"] == 81.13
    assert summary["letter_grade"] == "B"
    assert summary["weighted_percentage"] is None


def test_weighted_categories(graded_course, instructor, student, assignment):
    homework = gradebook_service.save_category(instructor, graded_course, {"name": "Homework", "weight": Decimal("40")})
    quizzes = gradebook_service.save_category(instructor, graded_course, {"name": "Quizzes", "weight": Decimal("60")})
    learning_service.update_assignment(instructor, assignment, {"category": homework})
    quiz_service.update_quiz(instructor, graded_course.quizzes.get(), {"category": quizzes})

    assert set(Grade.objects.values_list("category__name", flat=True)) == {"Homework", "Quizzes"}
    row, = gradebook_service.course_gradebook(student, graded_course)
    assert row["summary"]["weighted_percentage"] == 92.0


def test_new_grades_take_the_item_category(course, instructor, student):
    homework = gradebook_service.save_category(instructor, course, {"name": "Homework", "weight": Decimal("50")})
    gradebook_service.save_category(instructor, course, {"name": "Projects", "weight": Decimal("50")})
    lab = learning_service.create_assignment(instructor, course, {
        "title": "Lab", "due_date": timezone.now() + timedelta(days=1), "points": 10, "category": homework,
    })
    submission = learning_service.submit(student, lab, content_text="work")
    learning_service.grade_submission(instructor, submission, Decimal("8"))

    assert Grade.objects.get(assignment=lab, student=student).category == homework
    row, = gradebook_service.course_gradebook(instructor, course)
    assert row["summary"]["weighted_percentage"] == 80.0


def test_category_must_belong_to_the_course(course, course_factory, instructor, assignment, quiz_factory):
    elsewhere = gradebook_service.save_category(instructor, course_factory(), {"name": "Homework", "weight": 40})
    with pytest.raises(ValidationError) as exc:
        learning_service.update_assignment(instructor, assignment, {"category": elsewhere})
    assert "category" in exc.value.detail
    with pytest.raises(ValidationError):
        quiz_service.update_quiz(instructor, quiz_factory(), {"category": elsewhere})
    with pytest.raises(ValidationError):
        learning_service.create_assignment(instructor, course, {
            "title": "Lab", "due_date": timezone.now() + timedelta(days=1), "points": 10, "category": elsewhere,
        })


def test_api_assignment_category(course, course_factory, instructor):
    url = f"/api/v1/courses/{course.pk}/assignments/"
    homework = gradebook_service.save_category(instructor, course, {"name": "Homework", "weight": 40})
    elsewhere = gradebook_service.save_category(instructor, course_factory(), {"name": "Homework", "weight": 40})
    payload = {"title": "Lab", "due_date": (timezone.now() + timedelta(days=1)).isoformat(), "points": "10"}
    client = login(instructor)

    created = client.post(url, {**payload, "category": homework.pk}, format="json")
    assert created.status_code == 201
    assert created.data["category"] == homework.pk

    refused = client.post(url, {**payload, "category": elsewhere.pk}, format="json")
    assert refused.status_code == 400
    assert "category" in refused.data



def test_gradebook_access(graded_course, instructor, assistant, student, outsider):
    assert len(gradebook_service.course_gradebook(assistant, graded_course)) == 1
    with pytest.raises(PermissionDenied):
        gradebook_service.course_gradebook(outsider, graded_course)
    with pytest.raises(PermissionDenied):
        gradebook_service.save_category(assistant, graded_course, {"name": "Labs", "weight": 10})


def test_letter_grade_without_points():
    assert gradebook_service.letter_grade(Decimal("0"), Decimal("0")) == ""


def test_api_gradebook(graded_course, instructor, student, outsider):
    from LearningManagementApp.domain.services import course_service

    course_service.add_student(instructor, graded_course, outsider)
    url = f"/api/v1/courses/{graded_course.pk}/gradebook/"

    staff_rows = login(instructor).get(url).data
    assert {row["student"]["id"] for row in staff_rows} == {student.pk, outsider.pk}

    own = login(student).get(url).data
    assert [row["student"]["id"] for row in own] == [student.pk]
    assert {g["item"] for g in own[0]["grades"]} == {"Essay", "Quiz"}
    assert float(own[0]["summary"]["percentage"]) == 81.13


def test_api_grade_categories(course, instructor, student):
    url = f"/api/v1/courses/{course.pk}/grade-categories/"
    client = login(instructor)
    created = client.post(url, {"name": "Homework", "weight": "40"}, format="json")
    assert created.status_code == 201
    assert client.post(url, {"name": "Too much", "weight": "150"}, format="json").status_code == 400
    assert login(student).post(url, {"name": "Mine", "weight": "10"}, format="json").status_code == 403

    assert [row["name"] for row in results(login(student).get(url))] == ["Homework"]
    patched = client.patch(f"{url}{created.data['id']}/", {"weight": "35"}, format="json")
    assert float(patched.data["weight"]) == 35.0
    assert client.delete(f"{url}{created.data['id']}/").status_code == 204


def test_student_dashboard(course, instructor, student, assignment, quiz_factory):
    quiz = quiz_factory(close_date=timezone.now() + timedelta(days=1))
    quiz_factory(title="Hidden", is_published=False, close_date=timezone.now() + timedelta(days=1))
    announcement = communication_service.create_announcement(instructor, course, {"title": "Welcome", "content": "."})
    learning_service.submit(student, assignment, content_text="done")

    data = dashboard_service.dashboard_for(student)
    assert data["courses"] == [course]
    assert [(d["type"], d["id"]) for d in data["upcoming_deadlines"]] == [("quiz", quiz.pk), ("assignment", assignment.pk)]
    assert data["announcements"] == [announcement]
    assert [(a.pk, a.is_submitted) for a in data["assignments"]] == [(assignment.pk, True)]


def test_instructor_dashboard(course, instructor, assistant, student, assignment):
    learning_service.submit(student, assignment, content_text="done")
    for user in (instructor, assistant):
        data = dashboard_service.dashboard_for(user)
        assert [c.pk for c in data["courses"]] == [course.pk]
        assert data["courses"][0].student_count == 1
        assert data["pending_grading"] == 1


def test_api_dashboard_shapes(course, instructor, student, assignment):
    student_view = login(student).get("/api/v1/dashboard/")
    assert student_view.status_code == 200
    assert student_view.data["role"] == "STUDENT"
    assert student_view.data["assignments"][0]["is_submitted"] is False

    staff_view = login(instructor).get("/api/v1/dashboard/")
    assert staff_view.data["pending_grading"] == 0
    assert staff_view.data["courses"][0]["student_count"] == 1
