from datetime import timedelta

import pytest
from django.utils import timezone

from LearningManagementApp.quizzes.models import QuizAttempt
from LearningManagementApp.tests.conftest import correct_answers, login, results

pytestmark = pytest.mark.django_db


def attempts_url(quiz):
    return f"/api/v1/courses/{quiz.course_id}/quizzes/{quiz.pk}/attempts/"


def test_start_resume_answer_submit_flow(quiz_factory, student):
    quiz = quiz_factory()
    client = login(student)

    started = client.post(attempts_url(quiz), format="json")
    assert started.status_code == 201
    assert started.data["message"] == "Quiz attempt started."
    attempt_id = started.data["attempt"]["id"]
    served = started.data["attempt"]["questions"]
    assert len(served) == 3
    assert all("is_correct" not in option for q in served for option in q["options"])
    assert all("correct_answer" not in q for q in served)

    resumed = client.post(attempts_url(quiz), format="json")
    assert resumed.status_code == 200
    assert resumed.data["attempt"]["id"] == attempt_id

    saved = client.put(f"{attempts_url(quiz)}{attempt_id}/answers/", {"answers": correct_answers(quiz)}, format="json")
    assert saved.status_code == 200
    assert saved.data["auto_submitted"] is False

    submitted = client.post(f"{attempts_url(quiz)}{attempt_id}/submit/", {}, format="json")
    assert submitted.status_code == 200
    assert float(submitted.data["feedback"]["score"]) == 6.0
    assert submitted.data["feedback"]["is_graded"] is True
    assert submitted.data["attempt"]["status"] == "COMPLETED"
    assert any("is_correct" in option for q in submitted.data["attempt"]["questions"] for option in q["options"])


def test_answers_are_hidden_after_submit_when_results_are_off(quiz_factory, student):
    quiz = quiz_factory(show_results=False)
    client = login(student)
    attempt_id = client.post(attempts_url(quiz), format="json").data["attempt"]["id"]
    submitted = client.post(f"{attempts_url(quiz)}{attempt_id}/submit/", {"answers": {}}, format="json")
    assert all("is_correct" not in option for q in submitted.data["attempt"]["questions"] for option in q["options"])


def test_closed_quiz_returns_422(quiz_factory, student):
    quiz = quiz_factory(close_date=timezone.now() - timedelta(hours=1))
    resp = login(student).post(attempts_url(quiz), format="json")
    assert resp.status_code == 422


def test_invalid_question_id_returns_400(quiz_factory, student):
    quiz = quiz_factory()
    client = login(student)
    attempt_id = client.post(attempts_url(quiz), format="json").data["attempt"]["id"]
    resp = client.put(f"{attempts_url(quiz)}{attempt_id}/answers/", {"answers": {"999999": 1}}, format="json")
    assert resp.status_code == 400


def test_expired_attempt_is_auto_submitted_on_save(quiz_factory, student):
    quiz = quiz_factory(time_limit=5)
    client = login(student)
    attempt_id = client.post(attempts_url(quiz), format="json").data["attempt"]["id"]
    QuizAttempt.objects.filter(pk=attempt_id).update(start_time=timezone.now() - timedelta(minutes=9))

    resp = client.put(f"{attempts_url(quiz)}{attempt_id}/answers/", {"answers": correct_answers(quiz)}, format="json")
    assert resp.status_code == 200
    assert resp.data["auto_submitted"] is True
    assert resp.data["message"] == "Time limit expired. Your attempt has been submitted automatically."
    assert float(resp.data["feedback"]["score"]) == 0.0


def test_double_submit_returns_422(quiz_factory, student):
    quiz = quiz_factory()
    client = login(student)
    attempt_id = client.post(attempts_url(quiz), format="json").data["attempt"]["id"]
    assert client.post(f"{attempts_url(quiz)}{attempt_id}/submit/", {}, format="json").status_code == 200
    assert client.post(f"{attempts_url(quiz)}{attempt_id}/submit/", {}, format="json").status_code == 422


def test_staff_list_all_attempts_and_students_their_own(quiz_factory, course, instructor, student, outsider):
    from LearningManagementApp.domain.services import course_service

    course_service.add_student(instructor, course, outsider)
    quiz = quiz_factory()
    login(student).post(attempts_url(quiz), format="json")
    login(outsider).post(attempts_url(quiz), format="json")

    assert len(results(login(instructor).get(attempts_url(quiz)))) == 2
    own = results(login(student).get(attempts_url(quiz)))
    assert [row["user"]["id"] for row in own] == [student.pk]


def test_non_member_is_rejected(quiz_factory, outsider):
    quiz = quiz_factory()
    assert login(outsider).post(attempts_url(quiz), format="json").status_code == 403


def test_manual_grading_endpoint(quiz_factory, student, assistant):
    quiz = quiz_factory(with_essay=True)
    client = login(student)
    attempt_id = client.post(attempts_url(quiz), format="json").data["attempt"]["id"]
    submitted = client.post(
        f"{attempts_url(quiz)}{attempt_id}/submit/", {"answers": correct_answers(quiz)}, format="json"
    )
    assert submitted.data["attempt"]["status"] == "SUBMITTED"

    essay = quiz.questions.get(question_type="ESSAY")
    staff = login(assistant)
    graded = staff.post(
        f"{attempts_url(quiz)}{attempt_id}/grade/", {"scores": {str(essay.pk): "4"}, "feedback": "Great"}, format="json"
    )
    assert graded.status_code == 200
    assert graded.data["status"] == "COMPLETED"
    assert float(graded.data["score"]) == 10.0

    forbidden = client.post(f"{attempts_url(quiz)}{attempt_id}/grade/", {"scores": {str(essay.pk): "4"}}, format="json")
    assert forbidden.status_code == 403
