from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.domain.services import quiz_service
from LearningManagementApp.tests.conftest import login, results

pytestmark = pytest.mark.django_db


def quizzes_url(course):
    return f"/api/v1/courses/{course.pk}/quizzes/"


@pytest.mark.parametrize("payload, field", [
    ({"question_type": "MULTIPLE_CHOICE", "options": [{"option_text": "a", "is_correct": True}]}, "options"),
    ({"question_type": "MULTIPLE_CHOICE", "options": [{"option_text": "a", "is_correct": True}, {"option_text": "b", "is_correct": True}]}, "options"),
    ({"question_type": "MULTIPLE_ANSWER", "options": [{"option_text": "a"}, {"option_text": "b"}]}, "options"),
    ({"question_type": "TRUE_FALSE", "correct_answer": "perhaps"}, "correct_answer"),
])
def test_question_payload_rules(payload, field):
    with pytest.raises(ValidationError) as exc:
        quiz_service.validate_question_payload({"question_text": "Q", **payload})
    assert field in exc.value.detail


def test_true_false_gets_generated_options(quiz_factory):
    quiz = quiz_factory()
    question = quiz.questions.get(question_type="TRUE_FALSE")
    assert [(o.option_text, o.is_correct) for o in question.options.all()] == [("True", True), ("False", False)]


def test_only_instructors_author_quizzes(course, assistant, student):
    for user in (assistant, student):
        with pytest.raises(PermissionDenied):
            quiz_service.create_quiz(user, course, {"title": "Nope"})


def test_close_date_must_follow_open_date(course, instructor):
    now = timezone.now()
    with pytest.raises(ValidationError):
        quiz_service.create_quiz(instructor, course, {"title": "Q", "open_date": now, "close_date": now - timedelta(hours=1)})


def test_sync_questions_updates_adds_and_removes(quiz_factory, instructor):
    quiz = quiz_factory()
    keep = quiz.questions.get(question_type="MULTIPLE_CHOICE")
    quiz_service.update_quiz(instructor, quiz, {}, questions=[
        {"id": keep.pk, "question_text": "Renamed", "question_type": "MULTIPLE_CHOICE", "points": 5, "options": [
            {"option_text": "x", "is_correct": True}, {"option_text": "y", "is_correct": False},
        ]},
        {"question_text": "Essay", "question_type": "ESSAY", "points": 2},
    ])
    questions = list(quiz.questions.all())
    assert [q.question_text for q in questions] == ["Renamed", "Essay"]
    assert questions[0].pk == keep.pk
    assert quiz.total_points == 7


def test_sync_rejects_foreign_question_ids(quiz_factory, instructor):
    quiz = quiz_factory()
    with pytest.raises(ValidationError):
        quiz_service.sync_questions(quiz, [{"id": 999999, "question_text": "x", "question_type": "ESSAY"}])


def test_delete_question_closes_the_gap(quiz_factory, instructor):
    quiz = quiz_factory()
    first = quiz.questions.first()
    quiz_service.delete_question(instructor, first)
    assert list(quiz.questions.values_list("order", flat=True)) == [0, 1]


def test_update_question_keeps_unsent_fields(quiz_factory, instructor):
    quiz = quiz_factory()
    question = quiz.questions.get(question_type="MULTIPLE_CHOICE")
    updated = quiz_service.update_question(instructor, question, {"points": 4})
    assert updated.points == 4
    assert updated.options.count() == 2
    assert updated.question_text == "2 + 2?"


def test_publish_toggles_student_visibility(quiz_factory, instructor, student):
    quiz = quiz_factory(is_published=False)
    assert not quiz_service.quizzes_for(student, quiz.course).exists()
    quiz_service.set_published(instructor, quiz, True)
    assert list(quiz_service.quizzes_for(student, quiz.course)) == [quiz]
    quiz_service.set_published(instructor, quiz, False)
    assert not quiz.is_published


def test_api_create_quiz_with_questions(course, instructor):
    resp = login(instructor).post(quizzes_url(course), {
        "title": "Midterm",
        "time_limit": 30,
        "is_published": False,
        "questions": [
            {"question_text": "Capital of France?", "question_type": "SHORT_ANSWER", "points": 2, "correct_answer": "Paris"},
            {"question_text": "Water is wet", "question_type": "TRUE_FALSE", "correct_answer": "true"},
        ],
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["question_count"] == 2
    assert resp.data["is_published"] is False
    assert resp.data["questions"][1]["options"][0]["is_correct"] is True


def test_api_invalid_question_is_400(course, instructor):
    resp = login(instructor).post(quizzes_url(course), {
        "title": "Broken",
        "questions": [{"question_text": "Pick", "question_type": "MULTIPLE_CHOICE", "options": [{"option_text": "only"}]}],
    }, format="json")
    assert resp.status_code == 400


def test_api_students_see_published_quizzes_without_answer_keys(quiz_factory, student):
    quiz = quiz_factory()
    hidden = quiz_factory(is_published=False)
    client = login(student)
    ids = [row["id"] for row in results(client.get(quizzes_url(quiz.course)))]
    assert ids == [quiz.pk]
    detail = client.get(f"{quizzes_url(quiz.course)}{quiz.pk}/")
    assert detail.status_code == 200
    assert "questions" not in detail.data
    assert client.get(f"{quizzes_url(quiz.course)}{hidden.pk}/").status_code == 404


def test_api_question_endpoints_are_staff_only(quiz_factory, assistant, student):
    quiz = quiz_factory()
    url = f"{quizzes_url(quiz.course)}{quiz.pk}/questions/"
    assert login(student).get(url).status_code == 403
    listing = login(assistant).get(url)
    assert listing.status_code == 200
    assert listing.data["question_count"] == 3
    assert float(listing.data["total_points"]) == 6.0


def test_api_question_crud_and_reorder(quiz_factory, instructor):
    quiz = quiz_factory()
    client = login(instructor)
    url = f"{quizzes_url(quiz.course)}{quiz.pk}/questions/"
    created = client.post(url, {"question_text": "Why?", "question_type": "ESSAY", "points": 5}, format="json")
    assert created.status_code == 201
    assert created.data["order"] == 3

    patched = client.patch(f"{url}{created.data['id']}/", {"question_text": "Why not?"}, format="json")
    assert patched.status_code == 200
    assert patched.data["question_text"] == "Why not?"

    ids = list(reversed(quiz.questions.values_list("pk", flat=True)))
    assert client.post(f"{url}reorder/", {"question_ids": ids}, format="json").status_code == 204
    assert list(quiz.questions.values_list("pk", flat=True)) == ids

    bad = client.post(f"{url}reorder/", {"question_ids": [999999]}, format="json")
    assert bad.status_code == 400
    assert "question_ids" in bad.data

    assert client.delete(f"{url}{created.data['id']}/").status_code == 204


def test_api_publish_and_unpublish(quiz_factory, instructor, assistant):
    quiz = quiz_factory(is_published=False)
    url = f"{quizzes_url(quiz.course)}{quiz.pk}/"
    assert login(assistant).post(f"{url}publish/").status_code == 403
    client = login(instructor)
    assert client.post(f"{url}publish/").data["is_published"] is True
    assert client.post(f"{url}unpublish/").data["is_published"] is False
